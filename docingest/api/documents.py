"""
Document APIs.

POST /documents: upload a file, store it, create a pending document record.
GET /documents: list documents visible to the caller.
GET /documents/{id}, PATCH /documents/{id}, DELETE /documents/{id}.
"""

import logging
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, UploadFile, status
from pydantic import TypeAdapter, ValidationError

from docingest.api.auth import get_current_user
from docingest.api.deps import get_document_store
from docingest.api.errors import unwrap_or_raise
from docingest.config import Settings, get_settings
from docingest.models.common import Page
from docingest.models.document import Document, DocumentDraft, DocumentPatch, DocumentQuery
from docingest.models.user import User
from docingest.services.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]
Store = Annotated[DocumentStore, Depends(get_document_store)]

_metadata_adapter = TypeAdapter(Dict[str, Any])


def _parse_metadata(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Multipart forms carry metadata as a JSON string; it must decode to an object."""
    if raw is None or not raw.strip():
        return None
    try:
        return _metadata_adapter.validate_json(raw)
    except ValidationError:
        logger.warning("Rejected upload with malformed metadata")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="metadata must be a JSON object",
        )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=Document,
    summary="Upload a document",
)
async def upload_document(
    file: UploadFile,
    title: Annotated[str, Form(min_length=1)],
    current_user: CurrentUser,
    store: Store,
    settings: Annotated[Settings, Depends(get_settings)],
    description: Annotated[Optional[str], Form()] = None,
    metadata: Annotated[Optional[str], Form(description="JSON object stored with the document")] = None,
) -> Document:
    """
    Store the uploaded file and create a document record with status=pending.
    Ingestion is started separately via POST /ingestion.
    """
    extra = _parse_metadata(metadata)
    content = await file.read()
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        logger.warning("Rejected upload of %d bytes from user %s", len(content), current_user.id)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size exceeds {settings.max_upload_size_mb} MB",
        )
    draft = DocumentDraft(
        title=title,
        description=description,
        file_name=file.filename or "document",
        mime_type=file.content_type or "application/octet-stream",
        metadata=extra,
    )
    return unwrap_or_raise(await store.create(current_user, draft, content))


@router.get("", response_model=Page[Document], summary="List documents")
async def list_documents(
    query: Annotated[DocumentQuery, Query()],
    current_user: CurrentUser,
    store: Store,
) -> Page[Document]:
    """Admins see every document; everyone else sees only their own."""
    return unwrap_or_raise(await store.list(query, current_user))


@router.get("/{document_id}", response_model=Document, summary="Get a document")
async def get_document(document_id: str, current_user: CurrentUser, store: Store) -> Document:
    return unwrap_or_raise(await store.get(document_id, current_user))


@router.patch("/{document_id}", response_model=Document, summary="Update a document")
async def update_document(
    document_id: str,
    patch: DocumentPatch,
    current_user: CurrentUser,
    store: Store,
) -> Document:
    return unwrap_or_raise(await store.update(document_id, patch, current_user))


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a document")
async def delete_document(document_id: str, current_user: CurrentUser, store: Store) -> Response:
    unwrap_or_raise(await store.delete(document_id, current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
