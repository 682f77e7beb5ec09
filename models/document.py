import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from utils.errors import ParseError

METADATA_KEY = "@metadata"

# Server timestamps may carry 7 fractional digits, datetime only keeps 6
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


class DocumentMetadata(BaseModel):
    """Version-tracking fields attached to every loaded document.

    Instances are frozen: once a document has been recorded in a session its
    metadata can no longer be reassigned field by field. Unknown keys sent by
    the server are kept as extras.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: Optional[str] = Field(default=None, alias="@id")
    entity_type: Optional[str] = Field(default=None, alias="Raven-Entity-Name")
    clr_type: Optional[str] = Field(default=None, alias="Raven-Clr-Type")
    last_modified: Optional[datetime] = Field(default=None, alias="Last-Modified")
    etag: Optional[str] = Field(default=None, alias="@etag")

    @field_validator("last_modified", mode="before")
    @classmethod
    def parse_timestamp(cls, value):
        if not isinstance(value, str):
            return value
        if _ISO_DATE.match(value):
            return _EXTRA_FRACTION.sub(r"\1", value)
        # HTTP date, e.g. "Tue, 21 May 2013 14:19:36 GMT"
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def to_raw(self) -> Dict[str, Any]:
        """Return the wire representation, keyed by the server's names."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def get_metadata(document: Dict[str, Any]) -> Optional[DocumentMetadata]:
    metadata = document.get(METADATA_KEY)
    if metadata is None or isinstance(metadata, DocumentMetadata):
        return metadata
    try:
        return DocumentMetadata.model_validate(metadata)
    except ValidationError as e:
        raise ParseError(f"Parse Error: invalid document metadata: {e}") from e


def document_id(document: Dict[str, Any]) -> Optional[str]:
    metadata = get_metadata(document)
    return metadata.id if metadata else None


def normalize_document(document: Dict[str, Any], identifier: Optional[str] = None) -> Dict[str, Any]:
    """Replace the raw ``@metadata`` mapping of a document with a frozen model.

    Args:
        document: Document as parsed from a response body
        identifier: Identifier the document was requested by, used when the
            metadata does not name one

    Returns:
        The same document object, with ``@metadata`` normalized in place
    """
    metadata = get_metadata(document) or DocumentMetadata()
    if metadata.id is None and identifier is not None:
        metadata = metadata.model_copy(update={"id": identifier})
    document[METADATA_KEY] = metadata
    return document
