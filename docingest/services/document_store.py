"""
Document store: lookup, listing, mutation and deletion of Document records.

Every operation returns a Result. Authorization is re-checked here even when
the HTTP layer already restricted the route, so the store never depends on a
single enforcement point. set_status is the one privileged entry point and is
only used by the ingestion engine.
"""

import logging
from typing import Optional

from docingest.errors import ErrorKind, Result, StorageError
from docingest.models.common import Page, SortOrder
from docingest.models.document import (
    Document,
    DocumentDraft,
    DocumentPatch,
    DocumentQuery,
    DocumentStatus,
)
from docingest.models.ingestion import ACTIVE_STATUSES, IngestionProcess
from docingest.models.user import User
from docingest.repositories.base import ListCriteria, Repository
from docingest.services.access_control import Action, authorize, authorize_listing, owner_scope
from docingest.services.content_store import ContentStore
from docingest.workers.locks import KeyedLock

logger = logging.getLogger(__name__)


def _io_failure(e: StorageError) -> Result:
    logger.error("Storage failure: %s", e)
    return Result.fail(ErrorKind.IO_FAILURE, e.message, **e.details)


class DocumentStore:
    def __init__(
        self,
        repository: Repository[Document],
        content_store: ContentStore,
        locks: KeyedLock,
        processes: Optional[Repository[IngestionProcess]] = None,
    ) -> None:
        self.repository = repository
        self.content_store = content_store
        self.locks = locks
        # Without a process repository a PROCESSING status is always trusted
        self.processes = processes

    async def active_process(self, document_id: str) -> Optional[IngestionProcess]:
        """The document's pending or running ingestion process, if any. Raises StorageError."""
        if self.processes is None:
            return None
        active, _ = await self.processes.list(
            ListCriteria(filters={"document_id": document_id, "status": ACTIVE_STATUSES}, limit=1)
        )
        return active[0] if active else None

    async def is_processing(self, document: Document) -> bool:
        """
        Whether the document really has an ingestion in flight. A PROCESSING
        status with no active process is left over from a terminal write that
        reached the process but not the document; it is logged and ignored.
        Call with the document lock held. Raises StorageError.
        """
        if self.processes is None:
            return document.status == DocumentStatus.PROCESSING
        if await self.active_process(document.id) is not None:
            return True
        if document.status == DocumentStatus.PROCESSING:
            logger.warning("Document %s is marked processing but has no active ingestion process", document.id)
        return False

    async def create(self, actor: User, draft: DocumentDraft, content: bytes) -> Result[Document]:
        """Store the content and persist a new pending Document owned by actor."""
        decision = authorize(actor, Action.CREATE, None, "Document")
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())

        try:
            content_ref = await self.content_store.write(content, draft.file_name)
        except StorageError as e:
            return _io_failure(e)

        document = Document(
            owner_id=actor.id,
            title=draft.title,
            description=draft.description,
            file_name=draft.file_name,
            mime_type=draft.mime_type,
            metadata=draft.metadata,
            content_ref=content_ref,
            size=len(content),
            status=DocumentStatus.PENDING,
        )
        try:
            document = await self.repository.create(document)
        except StorageError as e:
            # Do not leave an unreferenced file behind
            try:
                await self.content_store.delete(content_ref)
            except StorageError:
                logger.warning("Could not clean up content %s after failed insert", content_ref)
            return _io_failure(e)

        logger.info("Document %s created by user %s", document.id, actor.id)
        return Result.ok(document)

    async def get(self, document_id: str, actor: User) -> Result[Document]:
        try:
            document = await self.repository.get(document_id)
        except StorageError as e:
            return _io_failure(e)
        decision = authorize(actor, Action.READ, document, "Document")
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())
        return Result.ok(document)

    async def list(self, query: DocumentQuery, actor: User) -> Result[Page[Document]]:
        decision = authorize_listing(actor)
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())

        filters = {}
        scope = owner_scope(actor)
        if scope is not None:
            filters["owner_id"] = scope
        elif query.owner_id:
            filters["owner_id"] = query.owner_id
        if query.status:
            filters["status"] = query.status

        criteria = ListCriteria(
            filters=filters,
            search=query.search,
            search_fields=("title", "description"),
            sort_by=query.sort_by,
            descending=query.sort_order == SortOrder.DESC,
            skip=query.skip,
            limit=query.limit,
        )
        try:
            documents, total = await self.repository.list(criteria)
        except StorageError as e:
            return _io_failure(e)
        return Result.ok(Page[Document](items=documents, total=total, page=query.page, limit=query.limit))

    async def update(self, document_id: str, patch: DocumentPatch, actor: User) -> Result[Document]:
        """Apply the non-null fields of patch, rejecting the write if the document changed meanwhile."""
        found = await self.get(document_id, actor)
        if not found.is_ok:
            return found
        document = found.value

        decision = authorize(actor, Action.UPDATE, document, "Document")
        if not decision.allowed:
            return Result.from_failure(decision.as_failure())

        changes = patch.changes()
        if not changes:
            return Result.ok(document)

        try:
            updated = await self.repository.update_fields(
                document_id, changes, expected_revision=document.revision
            )
            if updated is None and await self.repository.get(document_id) is None:
                return Result.fail(ErrorKind.NOT_FOUND, "Document not found")
        except StorageError as e:
            return _io_failure(e)
        if updated is None:
            return Result.fail(
                ErrorKind.CONFLICT,
                "Document was modified concurrently; reload and retry",
                document_id=document_id,
            )
        logger.info("Document %s updated by user %s: %s", document_id, actor.id, sorted(changes))
        return Result.ok(updated)

    async def delete(self, document_id: str, actor: User) -> Result[None]:
        """Remove stored content, then the record. If the content cannot be removed the record stays."""
        async with self.locks.hold(document_id):
            found = await self.get(document_id, actor)
            if not found.is_ok:
                return Result.from_failure(found.error)
            document = found.value

            decision = authorize(actor, Action.DELETE, document, "Document")
            if not decision.allowed:
                return Result.from_failure(decision.as_failure())
            try:
                processing = await self.is_processing(document)
            except StorageError as e:
                return _io_failure(e)
            if processing:
                return Result.fail(
                    ErrorKind.CONFLICT,
                    "Document is being processed; cancel the ingestion first",
                    document_id=document_id,
                )

            try:
                await self.content_store.delete(document.content_ref)
            except StorageError as e:
                logger.error("Aborting delete of document %s: content not removed", document_id)
                return _io_failure(e)
            try:
                await self.repository.delete(document_id)
            except StorageError as e:
                return _io_failure(e)

        logger.info("Document %s deleted by user %s", document_id, actor.id)
        return Result.ok(None)

    async def set_status(
        self,
        document_id: str,
        status: DocumentStatus,
        extracted_text: Optional[str] = None,
    ) -> Result[Document]:
        """
        Privileged status write for the ingestion engine. Writes only status
        (and extracted_text when given) so concurrent edits to other fields
        survive.
        """
        fields = {"status": status}
        if extracted_text is not None:
            fields["extracted_text"] = extracted_text
        try:
            updated = await self.repository.update_fields(document_id, fields)
        except StorageError as e:
            return _io_failure(e)
        if updated is None:
            return Result.fail(ErrorKind.NOT_FOUND, "Document not found", document_id=document_id)
        logger.info("Document %s status -> %s", document_id, status.value)
        return Result.ok(updated)
