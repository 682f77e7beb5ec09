# Standard library imports
import logging
import re
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence

# Third-party imports
import requests

# Local imports
from models.connection import ConnectionInfo
from models.document import METADATA_KEY
from utils.errors import (
    DEFAULT_SERVER_ERROR,
    MalformedRequestError,
    ParseError,
    ServerReportedError,
    TransportError,
)

logger = logging.getLogger(__name__)

DATABASE_PATH = "/databases/{database}"
DOCUMENT_PATH = "/docs/{id}"
QUERIES_PATH = "/queries/"

# Server errors look like "Some.Exception: the message\r\n   at stack..."
_ERROR_MESSAGE = re.compile(r": ([^\r\n]*)\r\n")


@dataclass
class BatchResponse:
    """Body of a batched load: the requested documents and the resolved includes."""
    results: List[Optional[Dict[str, Any]]] = field(default_factory=list)
    includes: List[Optional[Dict[str, Any]]] = field(default_factory=list)


class RavenTransport:
    """Thin HTTP layer over the document server's REST endpoints.

    One request is issued per call. Nothing is retried and no timeout is
    applied; failures are raised as ``RavenError`` subclasses for the caller
    to report.
    """

    def __init__(self, connection: ConnectionInfo, user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.connection = connection
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers.update({'User-Agent': user_agent})

        logger.debug(f"Initialized transport for {self.database_url}")

    def close(self):
        """Close the HTTP session to free up resources."""
        if hasattr(self, 'session'):
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def database_url(self) -> str:
        return self.connection.base_url + DATABASE_PATH.format(database=self.connection.database)

    def document_url(self, identifier: str) -> str:
        return self.database_url + DOCUMENT_PATH.format(id=identifier)

    def queries_url(self) -> str:
        return self.database_url + QUERIES_PATH

    def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Fetch a single document by identifier.

        Args:
            identifier: Document identifier, e.g. ``users/1``

        Returns:
            The document with a ``@metadata`` mapping built from the response
            headers, or None if the server does not know the identifier

        Raises:
            MalformedRequestError: The server answered 400
            ServerReportedError: The body carried an ``Error`` field
            ParseError: The body was not a JSON object
            TransportError: The request could not be sent
        """
        logger.debug(f"GET document {identifier}")
        response = self._send("GET", self.document_url(identifier))

        if response.status_code == 404:
            logger.debug(f"Document {identifier} does not exist")
            return None

        document = self._parse_body(response)
        if not isinstance(document, dict):
            raise ParseError("Parse Error: expected a JSON object", status_code=response.status_code)

        document[METADATA_KEY] = self._metadata_from_headers(identifier, response.headers)
        return document

    def post(self, identifiers: Sequence[str], includes: Optional[Sequence[str]] = None) -> BatchResponse:
        """Fetch several documents, and optionally their includes, in one request.

        Args:
            identifiers: Identifiers sent as the JSON request body
            includes: Field names sent as one ``include`` query parameter each

        Returns:
            BatchResponse with the server's ``Results`` and ``Includes`` arrays

        Raises:
            Same errors as ``get``
        """
        params = {"include": list(includes)} if includes else None
        logger.debug(f"POST batch of {len(identifiers)} id(s), includes={includes}")
        response = self._send("POST", self.queries_url(), json=list(identifiers), params=params)

        body = self._parse_body(response)
        if not isinstance(body, dict):
            raise ParseError("Parse Error: expected a JSON object", status_code=response.status_code)

        return BatchResponse(
            results=list(body.get("Results") or []),
            includes=list(body.get("Includes") or []),
        )

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise TransportError(e) from e

    def _parse_body(self, response: requests.Response) -> Any:
        """Classify a response and return its parsed JSON body."""
        if response.status_code == 400:
            raise MalformedRequestError()

        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(f"Parse Error: {e}", status_code=response.status_code) from e

        if isinstance(body, dict) and body.get("Error"):
            match = _ERROR_MESSAGE.search(str(body["Error"]))
            message = match.group(1) if match and match.group(1) else DEFAULT_SERVER_ERROR
            logger.warning(f"Server reported an error: {message}")
            raise ServerReportedError(message, status_code=response.status_code)

        return body

    @staticmethod
    def _metadata_from_headers(identifier: str, headers) -> Dict[str, Any]:
        return {
            "Raven-Entity-Name": headers.get("raven-entity-name"),
            "Raven-Clr-Type": headers.get("raven-clr-type"),
            "@id": identifier,
            "Last-Modified": _to_iso8601(headers.get("last-modified")),
            "@etag": headers.get("etag"),
        }


def _to_iso8601(value: Optional[str]) -> Optional[str]:
    """Convert an HTTP date header to an ISO-8601 UTC timestamp."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to parse Last-Modified '{value}': {e}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()
