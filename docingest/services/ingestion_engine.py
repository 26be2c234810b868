"""
Ingestion engine: the IngestionProcess state machine.

    pending -> running -> completed | failed
    pending | running -> failed  (cancellation)

At most one process per document may be active (pending or running), and the
document is PROCESSING exactly while that process exists. The check for an
active process and the insert of a new one run under a per-document lock, so
two concurrent requests cannot both pass the check.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from docingest.errors import ErrorKind, Result, StorageError
from docingest.models.common import Page, SortOrder
from docingest.models.document import DocumentStatus
from docingest.models.ingestion import (
    ACTIVE_STATUSES,
    CANCELLED_MESSAGE,
    IngestionProcess,
    IngestionQuery,
    IngestionStatus,
)
from docingest.models.user import User
from docingest.repositories.base import ListCriteria, Repository
from docingest.services.access_control import Action, authorize, authorize_listing, owner_scope
from docingest.services.document_store import DocumentStore
from docingest.services.extraction import Extractor
from docingest.workers.ingestion_worker import IngestionWorker
from docingest.workers.locks import KeyedLock
from docingest.workers.spawner import TaskSpawner

logger = logging.getLogger(__name__)


def _io_failure(e: StorageError) -> Result:
    logger.error("Storage failure: %s", e)
    return Result.fail(ErrorKind.IO_FAILURE, e.message, **e.details)


class IngestionEngine:
    def __init__(
        self,
        processes: Repository[IngestionProcess],
        documents: DocumentStore,
        extractor: Extractor,
        spawner: TaskSpawner,
        locks: KeyedLock,
    ) -> None:
        self.processes = processes
        self.documents = documents
        self.spawner = spawner
        self.locks = locks
        self.worker = IngestionWorker(processes, documents, extractor)

    async def create_ingestion_process(
        self,
        document_id: str,
        actor: User,
        configuration: Optional[Dict[str, Any]] = None,
    ) -> Result[IngestionProcess]:
        """
        Create a pending process for the document, mark the document PROCESSING
        and start the worker in the background. Returns without waiting for it.
        """
        found = await self.documents.get(document_id, actor)
        if not found.is_ok:
            return Result.from_failure(found.error)
        decision = authorize(actor, Action.INGEST, found.value, "Document")
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())

        async with self.locks.hold(document_id):
            try:
                # Re-read under the lock; the copy from get() may be stale
                document = await self.documents.repository.get(document_id)
                if document is None:
                    return Result.fail(ErrorKind.NOT_FOUND, "Document not found")
                # The active process decides; a PROCESSING status without one is stale
                active = await self._active_process(document_id)
                if active is not None:
                    if document.status == DocumentStatus.PROCESSING:
                        message = "Document is already being processed"
                    else:
                        message = "There is already an active ingestion process for this document"
                    return Result.fail(ErrorKind.CONFLICT, message, document_id=document_id, process_id=active.id)
                if document.status == DocumentStatus.PROCESSING:
                    logger.warning(
                        "Document %s was left processing with no active ingestion process; starting a new run",
                        document_id,
                    )
                process = await self.processes.create(
                    IngestionProcess(
                        document_id=document_id,
                        owner_id=document.owner_id,
                        configuration=configuration,
                        status=IngestionStatus.PENDING,
                    )
                )
            except StorageError as e:
                return _io_failure(e)

            marked = await self.documents.set_status(document_id, DocumentStatus.PROCESSING)
            if not marked.is_ok:
                await self._abandon(process.id, marked.error.message)
                return Result.from_failure(marked.error)

        self.spawner.spawn(self.run_process(process.id), name=f"ingestion-{process.id}")
        logger.info("Ingestion process %s created for document %s by user %s", process.id, document_id, actor.id)
        return Result.ok(process)

    async def run_process(self, process_id: str) -> None:
        await self.worker.run(process_id)

    async def find_by_id(self, process_id: str, actor: User) -> Result[IngestionProcess]:
        try:
            process = await self.processes.get(process_id)
        except StorageError as e:
            return _io_failure(e)
        decision = authorize(actor, Action.READ, process, "Ingestion process")
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())
        return Result.ok(process)

    async def find_all(self, query: IngestionQuery, actor: User) -> Result[Page[IngestionProcess]]:
        decision = authorize_listing(actor)
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())

        filters: Dict[str, Any] = {}
        scope = owner_scope(actor)
        if scope is not None:
            filters["owner_id"] = scope
        if query.document_id:
            filters["document_id"] = query.document_id
        if query.status:
            filters["status"] = query.status

        criteria = ListCriteria(
            filters=filters,
            sort_by=query.sort_by,
            descending=query.sort_order == SortOrder.DESC,
            skip=query.skip,
            limit=query.limit,
        )
        try:
            processes, total = await self.processes.list(criteria)
        except StorageError as e:
            return _io_failure(e)
        return Result.ok(
            Page[IngestionProcess](items=processes, total=total, page=query.page, limit=query.limit)
        )

    async def cancel_process(self, process_id: str, actor: User) -> Result[IngestionProcess]:
        """
        Fail an active process with the cancellation message and make its
        document eligible for a new ingestion. An extraction already in flight
        is not interrupted; its outcome is discarded by the worker.
        """
        found = await self.find_by_id(process_id, actor)
        if not found.is_ok:
            return found
        process = found.value

        decision = authorize(actor, Action.CANCEL, process, "Ingestion process")
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())
        if process.is_terminal:
            return Result.fail(
                ErrorKind.CONFLICT,
                "Cannot cancel a process that is not pending or running",
                process_id=process_id,
                status=process.status.value,
            )

        async with self.locks.hold(process.document_id):
            try:
                cancelled = await self.processes.update_fields(
                    process_id,
                    {
                        "status": IngestionStatus.FAILED,
                        "error_message": CANCELLED_MESSAGE,
                        "completed_at": datetime.now(timezone.utc),
                    },
                    status_in=ACTIVE_STATUSES,
                )
            except StorageError as e:
                return _io_failure(e)
            if cancelled is None:
                return Result.fail(
                    ErrorKind.CONFLICT, "Process finished before it could be cancelled", process_id=process_id
                )

            reset = await self.documents.set_status(process.document_id, DocumentStatus.PENDING)
            if not reset.is_ok:
                logger.warning("Could not reset document %s after cancel: %s", process.document_id, reset.error.message)

        logger.info("Ingestion process %s cancelled by user %s", process_id, actor.id)
        return Result.ok(cancelled)

    async def _active_process(self, document_id: str) -> Optional[IngestionProcess]:
        active, _ = await self.processes.list(
            ListCriteria(filters={"document_id": document_id, "status": ACTIVE_STATUSES}, limit=1)
        )
        return active[0] if active else None

    async def _abandon(self, process_id: str, reason: str) -> None:
        """Fail a process that was inserted but whose document could not be marked."""
        try:
            await self.processes.update_fields(
                process_id,
                {
                    "status": IngestionStatus.FAILED,
                    "error_message": reason,
                    "completed_at": datetime.now(timezone.utc),
                },
                status_in=ACTIVE_STATUSES,
            )
        except StorageError:
            logger.exception("Could not abandon ingestion process %s", process_id)
