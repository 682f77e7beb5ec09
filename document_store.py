import logging
from typing import Optional

from models.connection import ConnectionInfo
from operations.helper_classes.document_session import DocumentSession
from operations.helper_classes.load_result import LoadResult
from operations.load import Identifiers, Includes, LoadOperation
from utils.config import settings
from utils.http_client import RavenTransport

# Configure logging
logging.basicConfig(
    level=settings.env.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)


class DocumentStore:
    """Entry point: owns the connection and hands out sessions.

    Usage:
        with DocumentStore.from_settings() as store:
            session = store.open_session()
            error, users, _ = store.load(session, ["users/1", "users/2"])
    """

    def __init__(self, connection: ConnectionInfo, transport: Optional[RavenTransport] = None):
        self.connection = connection
        self.transport = transport or RavenTransport(connection, user_agent=settings.USER_AGENT)
        self._loader = LoadOperation(self.transport)
        logger.info(f"Document store ready for {connection.base_url} (database={connection.database})")

    @classmethod
    def from_settings(cls) -> "DocumentStore":
        return cls(settings.CONNECTION)

    def open_session(self) -> DocumentSession:
        """Start a new unit of work with an empty cache."""
        return DocumentSession()

    def load(self, session: DocumentSession, identifiers: Identifiers, include: Includes = None) -> LoadResult:
        return self._loader.load(session, identifiers, include)

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
