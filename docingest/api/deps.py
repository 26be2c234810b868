"""FastAPI dependencies resolving services from the application context."""

from typing import Annotated

from fastapi import Depends, Request

from docingest.context import AppContext
from docingest.services.document_store import DocumentStore
from docingest.services.ingestion_engine import IngestionEngine
from docingest.services.user_service import UserService


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_document_store(context: Annotated[AppContext, Depends(get_context)]) -> DocumentStore:
    return context.document_store


def get_ingestion_engine(context: Annotated[AppContext, Depends(get_context)]) -> IngestionEngine:
    return context.ingestion_engine


def get_user_service(context: Annotated[AppContext, Depends(get_context)]) -> UserService:
    return context.user_service
