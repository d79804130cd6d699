from typing import NoReturn

from fastapi import HTTPException, status

from src.core.errors import (
    AdvisoryValidationError,
    DataIntegrityError,
    ExternalServiceError,
    IdempotencyConflictError,
    RecordNotFoundError,
    StateConflictError,
)

HTTP_422_UNPROCESSABLE = getattr(
    status, "HTTP_422_UNPROCESSABLE_CONTENT", status.HTTP_422_UNPROCESSABLE_ENTITY
)


def raise_advisory_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, RecordNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (IdempotencyConflictError, StateConflictError, DataIntegrityError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, AdvisoryValidationError):
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=str(exc),
        ) from exc
    if isinstance(exc, ExternalServiceError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    raise exc
