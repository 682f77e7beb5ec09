import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from models.document import document_id, normalize_document

logger = logging.getLogger(__name__)


class DocumentSession:
    """Per unit-of-work cache of loaded documents and their live references.

    Two views are kept for every identifier: a snapshot of the document as
    fetched, which is never handed out, and the live document given to the
    caller, which may be modified and later compared against the snapshot.
    Entries are never evicted; open a new session to start from scratch.
    """

    def __init__(self):
        self._snapshots: Dict[str, Dict[str, Any]] = {}
        self._changes: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def __contains__(self, identifier: str) -> bool:
        return self.has(identifier)

    def __len__(self) -> int:
        return len(self._snapshots)

    def has(self, identifier: Optional[str]) -> bool:
        return identifier is not None and identifier in self._snapshots

    def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Return an independent copy of the cached document, or None."""
        snapshot = self._snapshots.get(identifier)
        if snapshot is None:
            return None
        return copy.deepcopy(snapshot)

    def tracked(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Return the live document registered for ``identifier``, or None."""
        return self._changes.get(identifier)

    def record(self, document: Dict[str, Any]) -> bool:
        """Register a freshly fetched document.

        Freezes the document's metadata, stores a snapshot and tracks the
        document itself. Recording an identifier that is already known is a
        no-op: the first write wins.

        Args:
            document: Document with ``@metadata`` naming its identifier

        Returns:
            bool: True if the document was recorded, False if already known

        Raises:
            ValueError: The document's metadata has no identifier
        """
        normalize_document(document)
        identifier = document_id(document)
        if identifier is None:
            raise ValueError("Cannot record a document without an @id in its metadata")

        with self._lock:
            if identifier in self._snapshots:
                logger.debug(f"Already tracking {identifier}, keeping first snapshot")
                return False
            self._snapshots[identifier] = copy.deepcopy(document)
            self._changes[identifier] = document

        logger.debug(f"Recorded {identifier}")
        return True

    def has_changes(self, identifier: str) -> bool:
        """Whether the live document differs from the state it was fetched in."""
        snapshot = self._snapshots.get(identifier)
        if snapshot is None:
            return False
        return self._changes.get(identifier) != snapshot

    def changed_ids(self) -> List[str]:
        with self._lock:
            identifiers = list(self._changes)
        return [identifier for identifier in identifiers if self.has_changes(identifier)]
