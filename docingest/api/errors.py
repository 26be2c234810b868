"""Translate service Results into HTTP responses."""

from typing import TypeVar

from fastapi import HTTPException, status

from docingest.errors import ErrorKind, Result

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.IO_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap_or_raise(result: Result[T]) -> T:
    """Return the value of a successful result, otherwise raise the matching HTTPException."""
    if result.is_ok:
        return result.value
    failure = result.error
    raise HTTPException(status_code=STATUS_BY_KIND[failure.kind], detail=failure.message)
