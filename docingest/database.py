"""
Database connection and Beanie ODM initialization.

Beanie is an async ODM for MongoDB built on Motor and Pydantic.
We initialize it once at startup and close the client at shutdown.
"""

import logging

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from docingest.config import Settings
from docingest.context import AppContext, build_context
from docingest.models.document import Document
from docingest.models.ingestion import IngestionProcess
from docingest.models.user import User
from docingest.repositories.mongo import (
    RECORD_MODELS,
    DocumentRecord,
    IngestionProcessRecord,
    MongoRepository,
    UserRecord,
)

logger = logging.getLogger(__name__)


async def connect_to_mongo(settings: Settings) -> AsyncIOMotorClient:
    """
    Create Motor client and initialize Beanie with the record models.
    Called once at application startup.
    """
    client = AsyncIOMotorClient(settings.mongodb_url)
    database = client[settings.mongodb_database]

    await init_beanie(database=database, document_models=RECORD_MODELS)
    logger.info("MongoDB connection established; Beanie initialized.")
    return client


def build_mongo_context(settings: Settings) -> AppContext:
    return build_context(
        MongoRepository(UserRecord, User),
        MongoRepository(DocumentRecord, Document),
        MongoRepository(IngestionProcessRecord, IngestionProcess),
        settings.upload_dir,
    )


async def close_mongo_connection(client: AsyncIOMotorClient) -> None:
    """Close MongoDB connection on application shutdown."""
    logger.info("Closing MongoDB connection.")
    client.close()
