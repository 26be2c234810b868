"""
Text extraction collaborators.

The ingestion worker only knows the Extractor interface. ByteCountExtractor is
the built-in stand-in: it reads the stored content and reports its size, which
is enough to drive the lifecycle end to end. Real extractors plug in behind the
same interface and must raise ExtractionError when they cannot produce text.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol

from docingest.errors import ExtractionError, StorageError
from docingest.services.content_store import ContentStore

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    async def extract(self, content_ref: str) -> str:
        ...


class ByteCountExtractor:
    def __init__(self, content_store: ContentStore) -> None:
        self.content_store = content_store

    async def extract(self, content_ref: str) -> str:
        try:
            data = await self.content_store.read(content_ref)
        except StorageError as e:
            raise ExtractionError(f"Unable to extract text from file: {e.message}", content_ref=content_ref) from e
        processed_at = datetime.now(timezone.utc).isoformat()
        logger.debug("Extracted %d bytes from %s", len(data), content_ref)
        return f"Extracted text from file ({len(data)} bytes). Processing completed at {processed_at}"
