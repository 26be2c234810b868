"""
Shared test fixtures.

Provides: an in-memory application context per test, one user per role, and
helpers for seeding documents.
"""

from typing import Awaitable, Callable

import pytest

from docingest.context import AppContext, build_memory_context
from docingest.models.document import Document, DocumentDraft, DocumentStatus
from docingest.models.user import User, UserRole
from docingest.services.document_store import DocumentStore
from docingest.services.ingestion_engine import IngestionEngine


@pytest.fixture
def upload_dir(tmp_path) -> str:
    return str(tmp_path / "uploads")


@pytest.fixture
def context(upload_dir) -> AppContext:
    return build_memory_context(upload_dir)


@pytest.fixture
def store(context: AppContext) -> DocumentStore:
    return context.document_store


@pytest.fixture
def engine(context: AppContext) -> IngestionEngine:
    return context.ingestion_engine


@pytest.fixture
def admin() -> User:
    return User(id="admin-1", email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def editor() -> User:
    return User(id="editor-1", email="editor@example.com", role=UserRole.EDITOR)


@pytest.fixture
def other_editor() -> User:
    return User(id="editor-2", email="other@example.com", role=UserRole.EDITOR)


@pytest.fixture
def viewer() -> User:
    return User(id="viewer-1", email="viewer@example.com", role=UserRole.VIEWER)


@pytest.fixture
def make_document(store: DocumentStore) -> Callable[..., Awaitable[Document]]:
    """Upload a document through the store as the given user."""

    async def _make(owner: User, content: bytes = b"hello", title: str = "Test Document", **fields) -> Document:
        draft = DocumentDraft(title=title, file_name="test.pdf", mime_type="application/pdf", **fields)
        return (await store.create(owner, draft, content)).unwrap()

    return _make


@pytest.fixture
def seed_document(context: AppContext) -> Callable[..., Awaitable[Document]]:
    """Insert a document record directly, bypassing role checks (e.g. viewer-owned)."""

    async def _seed(owner: User, status: DocumentStatus = DocumentStatus.PENDING) -> Document:
        content_ref = await context.content_store.write(b"seeded", "seed.txt")
        document = Document(
            owner_id=owner.id,
            title="Seeded",
            file_name="seed.txt",
            content_ref=content_ref,
            size=6,
            status=status,
        )
        return await context.documents.create(document)

    return _seed
