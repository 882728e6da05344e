"""
Error kinds raised by the booking core.

The core never raises HTTP errors. Callers (the API layer) translate these
into responses; see entertainment_hub.api.exception_handlers.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    FORBIDDEN = "FORBIDDEN"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"


class BookingError(Exception):
    """Base class for every error the booking core surfaces."""

    error_code: ErrorCode = ErrorCode.PERSISTENCE_FAILURE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(BookingError):
    """Referenced catalog item or booking does not exist."""

    error_code = ErrorCode.NOT_FOUND


class InsufficientInventoryError(BookingError):
    """Seats, tickets or tables are exhausted for the requested key."""

    error_code = ErrorCode.INSUFFICIENT_INVENTORY


class InvalidRequestError(BookingError):
    """Malformed quantity, seat list, date or booking type."""

    error_code = ErrorCode.INVALID_REQUEST


class InvalidStateTransitionError(InvalidRequestError):
    error_code = ErrorCode.INVALID_STATE_TRANSITION

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move booking from '{current}' to '{target}'",
            details={"current_status": current, "requested_status": target},
        )


class ForbiddenError(BookingError):
    """Caller is neither the booking owner nor an admin."""

    error_code = ErrorCode.FORBIDDEN


class AlreadyCancelledError(BookingError):
    error_code = ErrorCode.ALREADY_CANCELLED

    def __init__(self, booking_id: int):
        super().__init__(
            "Booking is already cancelled",
            details={"booking_id": booking_id},
        )


class PersistenceError(BookingError):
    """The unit of work could not commit; all partial writes were rolled back."""

    error_code = ErrorCode.PERSISTENCE_FAILURE


class LockTimeoutError(PersistenceError):
    error_code = ErrorCode.LOCK_TIMEOUT

    def __init__(self, key: str, waited: float):
        super().__init__(
            "Timed out waiting for inventory lock",
            details={"inventory_key": key, "waited_seconds": waited},
        )
