"""
Ingestion APIs.

POST /ingestion starts a run and returns the pending record immediately; the
client polls GET /ingestion/status/{id} until it reaches completed or failed.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from docingest.api.auth import get_current_user
from docingest.api.deps import get_ingestion_engine
from docingest.api.errors import unwrap_or_raise
from docingest.models.common import Page
from docingest.models.ingestion import IngestionProcess, IngestionQuery, IngestionRequest
from docingest.models.user import User
from docingest.services.ingestion_engine import IngestionEngine

router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]
Engine = Annotated[IngestionEngine, Depends(get_ingestion_engine)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestionProcess,
    summary="Start ingestion for a document",
)
async def create_ingestion_process(
    request: IngestionRequest,
    current_user: CurrentUser,
    engine: Engine,
) -> IngestionProcess:
    return unwrap_or_raise(
        await engine.create_ingestion_process(request.document_id, current_user, request.configuration)
    )


@router.get("", response_model=Page[IngestionProcess], summary="List ingestion processes")
async def list_ingestion_processes(
    query: Annotated[IngestionQuery, Query()],
    current_user: CurrentUser,
    engine: Engine,
) -> Page[IngestionProcess]:
    return unwrap_or_raise(await engine.find_all(query, current_user))


@router.get("/status/{process_id}", response_model=IngestionProcess, summary="Get ingestion status")
async def get_process_status(process_id: str, current_user: CurrentUser, engine: Engine) -> IngestionProcess:
    return unwrap_or_raise(await engine.find_by_id(process_id, current_user))


@router.post("/{process_id}/cancel", response_model=IngestionProcess, summary="Cancel an ingestion process")
async def cancel_process(process_id: str, current_user: CurrentUser, engine: Engine) -> IngestionProcess:
    return unwrap_or_raise(await engine.cancel_process(process_id, current_user))
