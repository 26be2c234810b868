"""Domain models and query schemas."""

from docingest.models.common import Page, PageParams, SortOrder
from docingest.models.document import (
    Document,
    DocumentDraft,
    DocumentPatch,
    DocumentQuery,
    DocumentStatus,
)
from docingest.models.ingestion import (
    ACTIVE_STATUSES,
    CANCELLED_MESSAGE,
    TERMINAL_STATUSES,
    IngestionProcess,
    IngestionQuery,
    IngestionRequest,
    IngestionStatus,
)
from docingest.models.user import User, UserPatch, UserQuery, UserRole

__all__ = [
    "ACTIVE_STATUSES",
    "CANCELLED_MESSAGE",
    "TERMINAL_STATUSES",
    "Document",
    "DocumentDraft",
    "DocumentPatch",
    "DocumentQuery",
    "DocumentStatus",
    "IngestionProcess",
    "IngestionQuery",
    "IngestionRequest",
    "IngestionStatus",
    "Page",
    "PageParams",
    "SortOrder",
    "User",
    "UserPatch",
    "UserQuery",
    "UserRole",
]
