# Standard library imports
import logging
from collections.abc import Iterable
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# Local imports
from models.document import document_id, normalize_document
from operations.helper_classes.document_session import DocumentSession
from operations.helper_classes.load_result import LoadResult
from utils.errors import RavenError
from utils.http_client import RavenTransport

logger = logging.getLogger(__name__)

Identifiers = Union[str, Sequence[str]]
Includes = Union[str, Sequence[str], None]


class LoadOperation:
    """Resolve identifiers into documents through a session cache.

    Decides per call whether the answer is already in the session, needs a
    single GET or needs one batched POST, and records everything fetched so
    it is never requested twice within the same session. At most one request
    is issued per ``load`` call.
    """

    def __init__(self, transport: RavenTransport):
        self.transport = transport

    def load(self, session: DocumentSession, identifiers: Identifiers, include: Includes = None) -> LoadResult:
        """Load one or many documents, optionally with the documents they reference.

        Args:
            session: Cache and change tracker owned by the caller
            identifiers: One identifier, or a list of identifiers for a batch
            include: Field name(s) whose values reference other documents

        Returns:
            LoadResult: ``(error, results, includes)``; transport failures are
            reported in ``error``, never raised

        Raises:
            TypeError: ``identifiers`` is neither a string nor an iterable of strings
        """
        if not identifiers:
            return LoadResult.of()

        includes = self._normalize_includes(include)

        if isinstance(identifiers, str):
            if not includes:
                return self._load_single(session, identifiers)
            return self._load_single_with_includes(session, identifiers, includes)

        if isinstance(identifiers, Iterable):
            return self._load_batch(session, list(identifiers), includes)

        raise TypeError(f"identifiers must be a string or a list of strings, got {type(identifiers).__name__}")

    @staticmethod
    def _normalize_includes(include: Includes) -> List[str]:
        if not include:
            return []
        if isinstance(include, str):
            return [include]
        return list(include)

    def _load_single(self, session: DocumentSession, identifier: str) -> LoadResult:
        if session.has(identifier):
            logger.debug(f"Cache hit for {identifier}")
            return LoadResult.of([session.get(identifier)])

        try:
            raw = self.transport.get(identifier)
            if raw is None:
                return LoadResult.of()
            document = normalize_document(raw, identifier)
        except RavenError as e:
            logger.warning(f"Failed to load {identifier}: {e}")
            return LoadResult.of(error=e)

        session.record(document)
        return LoadResult.of([document])

    def _load_single_with_includes(self, session: DocumentSession, identifier: str,
                                   includes: List[str]) -> LoadResult:
        if not session.has(identifier):
            return self._load_batch(session, [identifier], includes)

        document = session.get(identifier)
        included, uncached = self._partition_includes(session, document, includes)

        if not uncached:
            logger.debug(f"All includes of {identifier} are cached")
            return LoadResult.of([document], included)

        try:
            if len(uncached) == 1:
                raw = self.transport.get(uncached[0])
                fetched = [normalize_document(raw, uncached[0])] if raw is not None else []
            else:
                # one batched request whatever the include fan-out
                fetched = self._normalize_all(self.transport.post(uncached).results)
        except RavenError as e:
            logger.warning(f"Failed to load includes {uncached} of {identifier}: {e}")
            return LoadResult.of([document], included, error=e)

        for doc in fetched:
            _record(session, doc)
            included.append(doc)

        return LoadResult.of([document], included)

    def _partition_includes(self, session: DocumentSession, document: Dict[str, Any],
                            includes: List[str]) -> Tuple[List[Dict[str, Any]], List[str]]:
        """Split the documents referenced by ``includes`` into cached copies and missing ids."""
        included, uncached, seen = [], [], set()
        for field in includes:
            for reference in _referenced_ids(document, field):
                if reference in seen:
                    continue
                seen.add(reference)
                if session.has(reference):
                    included.append(session.get(reference))
                else:
                    uncached.append(reference)
        return included, uncached

    def _load_batch(self, session: DocumentSession, identifiers: List[str],
                    includes: List[str]) -> LoadResult:
        # The cache is not consulted: one request costs the same for any number of ids
        try:
            response = self.transport.post(identifiers, includes or None)
            documents = self._normalize_all(response.results)
            included = self._normalize_all(response.includes)
        except RavenError as e:
            logger.warning(f"Failed to load batch of {len(identifiers)} id(s): {e}")
            return LoadResult.of(error=e)

        for document in documents + included:
            _record(session, document)

        logger.debug(f"Loaded {len(documents)} document(s) and {len(included)} include(s)")
        return LoadResult.of(documents, included)

    @staticmethod
    def _normalize_all(documents: Iterable[Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        # the server answers null for identifiers it does not know
        return [normalize_document(document) for document in documents if document is not None]


def _referenced_ids(document: Dict[str, Any], field: str) -> List[str]:
    """Identifiers held by ``field``: a single value or each element of a list.

    Only strings and integers name documents; any other value is skipped.
    """
    value = document.get(field)
    values = value if isinstance(value, (list, tuple)) else [value]
    return [str(v) for v in values if _is_identifier(v)]


def _is_identifier(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value)
    return isinstance(value, int)


def _record(session: DocumentSession, document: Dict[str, Any]) -> None:
    if document_id(document) is None:
        logger.warning("Skipping a returned document without an @id in its metadata")
        return
    session.record(document)
