"""
Background ingestion worker.

Runs as a spawned task after an ingestion process is created: marks the process
running, calls the extractor on the document's content, then records the
outcome on both the process and the document.

Why background: extraction can take a while, and the caller already has the
pending record and polls for status. Errors here never reach that caller; they
end up in the process's error_message.

Every terminal write is conditional on the process still being active. A
process cancelled while extraction was in flight stays cancelled, and the
document (already reset to pending by the cancellation) is left alone.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from docingest.errors import ExtractionError, StorageError
from docingest.models.document import DocumentStatus
from docingest.models.ingestion import ACTIVE_STATUSES, IngestionProcess, IngestionStatus
from docingest.repositories.base import Repository
from docingest.services.document_store import DocumentStore
from docingest.services.extraction import Extractor

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


class IngestionWorker:
    def __init__(
        self,
        processes: Repository[IngestionProcess],
        documents: DocumentStore,
        extractor: Extractor,
    ) -> None:
        self.processes = processes
        self.documents = documents
        self.extractor = extractor

    async def run(self, process_id: str) -> None:
        """Full run for one process: pending -> running -> completed | failed."""
        try:
            process = await self.processes.update_fields(
                process_id,
                {"status": IngestionStatus.RUNNING, "started_at": datetime.now(timezone.utc)},
                status_in={IngestionStatus.PENDING},
            )
        except StorageError:
            logger.exception("Could not start ingestion process %s", process_id)
            return
        if process is None:
            # Cancelled (or gone) before we got here; nobody is waiting on us
            logger.info("Ingestion process %s is no longer pending; skipping.", process_id)
            return
        logger.info("Started ingestion process %s for document %s", process_id, process.document_id)

        try:
            document = await self.documents.repository.get(process.document_id)
            if document is None:
                raise ExtractionError(f"Document {process.document_id} no longer exists")
            text = await self.extractor.extract(document.content_ref)
        except Exception as e:
            logger.exception("Ingestion process %s failed: %s", process_id, e)
            await self._finish_failed(process, getattr(e, "message", None) or str(e) or e.__class__.__name__)
            return

        await self._finish_completed(process, text)

    async def _finish_completed(self, process: IngestionProcess, text: str) -> None:
        completed_at = datetime.now(timezone.utc)
        result = {
            "extracted_text": text,
            "characters": len(text),
            "processed_at": completed_at.isoformat(),
        }
        written = await self._write_terminal(
            process.id,
            {"status": IngestionStatus.COMPLETED, "result": result, "completed_at": completed_at},
        )
        if not written:
            return
        outcome = await self.documents.set_status(process.document_id, DocumentStatus.COMPLETED, extracted_text=text)
        if not outcome.is_ok:
            logger.warning("Could not mark document %s completed: %s", process.document_id, outcome.error.message)
            return
        logger.info("Ingestion process %s completed; %d characters extracted.", process.id, len(text))

    async def _finish_failed(self, process: IngestionProcess, message: str) -> None:
        written = await self._write_terminal(
            process.id,
            {
                "status": IngestionStatus.FAILED,
                "error_message": message[:MAX_ERROR_LENGTH],
                "completed_at": datetime.now(timezone.utc),
            },
        )
        if not written:
            return
        outcome = await self.documents.set_status(process.document_id, DocumentStatus.FAILED)
        if not outcome.is_ok:
            logger.warning("Could not mark document %s failed: %s", process.document_id, outcome.error.message)

    async def _write_terminal(self, process_id: str, fields: Dict[str, Any]) -> bool:
        """
        Returns False only when the process is already terminal. A storage
        failure is logged and reported as written so the document write still
        happens.
        """
        try:
            updated = await self.processes.update_fields(process_id, fields, status_in=ACTIVE_STATUSES)
        except StorageError:
            logger.exception("Could not persist terminal state of ingestion process %s", process_id)
            return True
        if updated is None:
            logger.info("Ingestion process %s already finished or cancelled; discarding worker outcome.", process_id)
            return False
        return True
