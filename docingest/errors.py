"""
Error kinds and result values for the lifecycle engine.

Business-rule violations (not found, forbidden, conflict) are returned as
Failure values inside a Result so that every caller has to look at them.
IO problems raised by repositories and the content store are exceptions at the
IO layer and are turned into io_failure results by the services.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories; the HTTP adapter maps each one to a status code."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    VALIDATION = "validation_error"
    IO_FAILURE = "io_failure"


class DocIngestException(Exception):
    """Base exception for all docingest errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class StorageError(DocIngestException):
    """Raised when a repository or the content store cannot complete an operation."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details)


class ExtractionError(DocIngestException):
    """Raised by an extractor when text cannot be produced for a content reference."""

    def __init__(
        self,
        message: str,
        content_ref: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if content_ref:
            details["content_ref"] = content_ref
        super().__init__(message, details)


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)


class LifecycleError(DocIngestException):
    """Raised by Result.unwrap() when the result holds a Failure."""

    def __init__(self, failure: Failure) -> None:
        self.failure = failure
        super().__init__(failure.message, dict(failure.details, kind=failure.kind.value))

    @property
    def kind(self) -> ErrorKind:
        return self.failure.kind


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a Failure, never both."""

    value: Optional[T] = None
    error: Optional[Failure] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, **details: Any) -> "Result[T]":
        return cls(error=Failure(kind=kind, message=message, details=details))

    @classmethod
    def from_failure(cls, failure: Failure) -> "Result[T]":
        return cls(error=failure)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise LifecycleError(self.error)
        return self.value  # type: ignore[return-value]
