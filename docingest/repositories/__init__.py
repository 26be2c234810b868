"""Persistence backends for users, documents and ingestion processes."""

from docingest.repositories.base import ListCriteria, Repository
from docingest.repositories.memory import InMemoryRepository

__all__ = ["InMemoryRepository", "ListCriteria", "Repository"]
