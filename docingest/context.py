"""
Application context.

Holds the repositories and collaborators the services need and builds the
services from them. One context per application instance; nothing here is
module-global, so tests build their own and await the spawner directly.
"""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional

from docingest.models.document import Document
from docingest.models.ingestion import IngestionProcess
from docingest.models.user import User
from docingest.repositories.base import Repository
from docingest.repositories.memory import InMemoryRepository
from docingest.services.content_store import ContentStore, LocalContentStore
from docingest.services.document_store import DocumentStore
from docingest.services.extraction import ByteCountExtractor, Extractor
from docingest.services.ingestion_engine import IngestionEngine
from docingest.services.user_service import UserService
from docingest.workers.locks import KeyedLock
from docingest.workers.spawner import TaskSpawner


@dataclass
class AppContext:
    users: Repository[User]
    documents: Repository[Document]
    processes: Repository[IngestionProcess]
    content_store: ContentStore
    extractor: Extractor
    spawner: TaskSpawner = field(default_factory=TaskSpawner)
    document_locks: KeyedLock = field(default_factory=KeyedLock)

    @cached_property
    def document_store(self) -> DocumentStore:
        return DocumentStore(self.documents, self.content_store, self.document_locks, self.processes)

    @cached_property
    def user_service(self) -> UserService:
        return UserService(self.users)

    @cached_property
    def ingestion_engine(self) -> IngestionEngine:
        return IngestionEngine(
            self.processes,
            self.document_store,
            self.extractor,
            self.spawner,
            self.document_locks,
        )


def build_context(
    users: Repository[User],
    documents: Repository[Document],
    processes: Repository[IngestionProcess],
    upload_dir: str,
    extractor: Optional[Extractor] = None,
) -> AppContext:
    content_store = LocalContentStore(upload_dir)
    return AppContext(
        users=users,
        documents=documents,
        processes=processes,
        content_store=content_store,
        extractor=extractor or ByteCountExtractor(content_store),
    )


def build_memory_context(upload_dir: str, extractor: Optional[Extractor] = None) -> AppContext:
    return build_context(
        InMemoryRepository(User),
        InMemoryRepository(Document),
        InMemoryRepository(IngestionProcess),
        upload_dir,
        extractor,
    )
