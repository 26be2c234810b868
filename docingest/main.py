"""
FastAPI application entry point.

Sets up the app, lifespan (storage backend, background task shutdown), CORS,
logging, and includes API routers. Ingestion runs as tasks on the application's
TaskSpawner so requests return immediately while processing continues.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docingest.api import documents, ingestion, users
from docingest.config import get_settings
from docingest.context import AppContext, build_memory_context
from docingest.database import build_mongo_context, close_mongo_connection, connect_to_mongo

# Configure logging - single place for log format and level
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context: runs on startup and shutdown.
    Builds the application context unless one was injected, and lets running
    ingestions finish before the process exits.
    """
    settings = get_settings()
    if not settings.jwt_secret:
        logger.warning("JWT_SECRET is not set; every authenticated request will be refused.")

    mongo_client = None
    if getattr(app.state, "context", None) is None:
        upload_path = Path(settings.upload_dir)
        upload_path.mkdir(parents=True, exist_ok=True)
        logger.info("Upload directory ready: %s", upload_path.resolve())

        if settings.storage_backend == "mongo":
            mongo_client = await connect_to_mongo(settings)
            app.state.context = build_mongo_context(settings)
        else:
            logger.info("Using in-memory storage; data is lost on restart.")
            app.state.context = build_memory_context(settings.upload_dir)

    yield

    await app.state.context.spawner.shutdown(settings.shutdown_grace_seconds)
    if mongo_client is not None:
        await close_mongo_connection(mongo_client)


def create_application(context: Optional[AppContext] = None) -> FastAPI:
    """Factory for the FastAPI app. Pass a context to bypass storage setup (tests)."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Upload documents and run role-gated ingestion over them.",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production to your frontend origin
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(documents.router, prefix="/api/documents", tags=["documents"])
    app.include_router(ingestion.router, prefix="/api/ingestion", tags=["ingestion"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])

    return app


app = create_application()
