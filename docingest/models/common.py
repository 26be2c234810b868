"""Pagination and sorting shared by document and ingestion queries."""

from enum import Enum
from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, gt=0)
    sort_order: SortOrder = SortOrder.DESC

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Page(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
