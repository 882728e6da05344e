"""
Translate booking-core errors into HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from entertainment_hub.core.exceptions import (
    AlreadyCancelledError,
    BookingError,
    ForbiddenError,
    InsufficientInventoryError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from entertainment_hub.core.logging import get_logger

logger = get_logger(__name__)

# Checked in order; subclasses (InvalidStateTransition, LockTimeout) inherit
# their parent's status code.
STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientInventoryError, status.HTTP_409_CONFLICT),
    (AlreadyCancelledError, status.HTTP_409_CONFLICT),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_code_for(exc: BookingError) -> int:
    for error_class, status_code in STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("booking_error", error_code=exc.error_code.value, message=exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
