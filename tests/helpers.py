"""Test doubles and assertions shared across the suite."""

import asyncio
from typing import Optional

from docingest.context import AppContext
from docingest.errors import ExtractionError
from docingest.models.document import DocumentStatus
from docingest.models.ingestion import ACTIVE_STATUSES, IngestionProcess
from docingest.models.user import User
from docingest.repositories.base import ListCriteria
from docingest.services.ingestion_engine import IngestionEngine


class GatedExtractor:
    """Extractor that blocks until released, so tests can act while a run is in flight."""

    def __init__(self, text: str = "gated text") -> None:
        self.text = text
        self.released = False
        self.calls: list[str] = []

    async def extract(self, content_ref: str) -> str:
        self.calls.append(content_ref)
        while not self.released:
            await asyncio.sleep(0.001)
        return self.text


class FailingExtractor:
    def __init__(self, message: str = "corrupt file") -> None:
        self.message = message

    async def extract(self, content_ref: str) -> str:
        raise ExtractionError(self.message, content_ref=content_ref)


async def wait_for_status(
    engine: IngestionEngine, process_id: str, actor: User, status, attempts: int = 200
) -> IngestionProcess:
    """Yield to the loop until the process reaches status."""
    for _ in range(attempts):
        process = (await engine.find_by_id(process_id, actor)).unwrap()
        if process.status == status:
            return process
        await asyncio.sleep(0)
    raise AssertionError(f"process {process_id} never reached {status}")


async def assert_processing_invariant(context: AppContext, document_id: Optional[str] = None) -> None:
    """Document is PROCESSING exactly when one of its processes is active."""
    documents, _ = await context.documents.list(ListCriteria())
    for document in documents:
        if document_id and document.id != document_id:
            continue
        active, _ = await context.processes.list(
            ListCriteria(filters={"document_id": document.id, "status": ACTIVE_STATUSES})
        )
        assert len(active) <= 1
        assert (document.status == DocumentStatus.PROCESSING) == (len(active) == 1), (
            f"document {document.id} is {document.status} with {len(active)} active process(es)"
        )
