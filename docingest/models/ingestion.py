"""
IngestionProcess model.

One record per ingestion run. Records are append-only history for a document;
they move pending -> running -> completed|failed and are never deleted.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from docingest.models.common import PageParams

CANCELLED_MESSAGE = "Process cancelled by user"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = frozenset({IngestionStatus.PENDING, IngestionStatus.RUNNING})
TERMINAL_STATUSES = frozenset({IngestionStatus.COMPLETED, IngestionStatus.FAILED})


class IngestionProcess(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    owner_id: str  # Copied from the document, which never changes owner
    status: IngestionStatus = IngestionStatus.PENDING
    error_message: Optional[str] = None  # Set only when FAILED
    result: Optional[Dict[str, Any]] = None  # Set only when COMPLETED
    configuration: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    revision: int = 0
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class IngestionRequest(BaseModel):
    document_id: str
    configuration: Optional[Dict[str, Any]] = None


class IngestionQuery(PageParams):
    document_id: Optional[str] = None
    status: Optional[IngestionStatus] = None
    sort_by: Literal["created_at", "updated_at", "status", "started_at", "completed_at"] = "created_at"
