"""
Document model for uploaded files.

Tracks the content reference, status through the ingestion lifecycle, and
ownership. The status field is only written through DocumentStore.set_status,
which the ingestion engine uses.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from docingest.models.common import PageParams


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Lifecycle states of a document."""

    PENDING = "pending"  # Uploaded, or last ingestion was cancelled
    PROCESSING = "processing"  # Exactly one active ingestion process exists
    COMPLETED = "completed"  # Text extracted
    FAILED = "failed"  # Last ingestion failed


class Document(BaseModel):
    """
    An uploaded file and its processing state.
    owner_id links to the User who uploaded it and never changes.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Master services agreement",
                "file_name": "contract.pdf",
                "content_ref": "uploads/1c9e4f0a.pdf",
                "status": "pending",
                "created_at": "2025-01-01T00:00:00Z",
            }
        }
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    title: str
    description: Optional[str] = None
    file_name: str
    content_ref: str  # Handle returned by the content store
    mime_type: str = "application/octet-stream"
    size: int = 0
    status: DocumentStatus = DocumentStatus.PENDING
    extracted_text: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    revision: int = 0  # Bumped on every write
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class DocumentDraft(BaseModel):
    """Descriptive fields supplied with an upload."""

    title: str = Field(min_length=1)
    description: Optional[str] = None
    file_name: str = "document"
    mime_type: str = "application/octet-stream"
    metadata: Optional[Dict[str, Any]] = None


class DocumentPatch(BaseModel):
    """
    Field-level partial update. Only these fields are mutable; identity,
    ownership and status are rejected as unknown keys.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    extracted_text: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def changes(self) -> Dict[str, Any]:
        return {name: value for name, value in self.model_dump().items() if value is not None}


class DocumentQuery(PageParams):
    search: Optional[str] = None
    status: Optional[DocumentStatus] = None
    owner_id: Optional[str] = None  # Honoured for admins only
    sort_by: Literal["created_at", "updated_at", "title", "status", "size"] = "created_at"
