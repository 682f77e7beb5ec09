from typing import Optional

DEFAULT_SERVER_ERROR = "An error occured, no documents could be retrieved"
MALFORMED_REQUEST = (
    "Load Failed: The request url was badly formed. "
    "Ensure the id does not contain illegal characters"
)


class RavenError(Exception):
    """Base class for errors reported while talking to the document server."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MalformedRequestError(RavenError):
    """The server answered 400, usually an identifier with illegal characters."""

    def __init__(self, message: str = MALFORMED_REQUEST):
        super().__init__(message, status_code=400)


class ServerReportedError(RavenError):
    """The response body carried a structured ``Error`` field."""


class ParseError(RavenError):
    """The response body was not valid JSON, or its document metadata did not validate."""


class TransportError(RavenError):
    """Connection level failure, wraps the original ``requests`` exception."""

    def __init__(self, original: Exception):
        super().__init__(str(original))
        self.original = original


class MultipleResultsError(ValueError):
    """A ``single`` query matched more than one element."""

    def __init__(self, message: str = "Sequence contains more than one element"):
        super().__init__(message)
