"""Mapping of engine errors onto HTTP errors."""

from fastapi import HTTPException
from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from joust.engine.exceptions import (
    JoinFailedError,
    JoustError,
    NotFoundError,
    PreconditionFailedError,
    RejectionReason,
    SendFailedError,
)


def rejection(reason: RejectionReason, message: str | None = None) -> HTTPException:
    return HTTPException(
        status_code=HTTP_409_CONFLICT,
        detail={"message": message or reason.value, "reason": reason.value},
    )


def to_http_exception(error: JoustError) -> HTTPException:
    """Translate an engine error; retryable commit failures become 503."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PreconditionFailedError):
        return rejection(error.reason, str(error))
    if isinstance(error, (JoinFailedError, SendFailedError)):
        return HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    return HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
