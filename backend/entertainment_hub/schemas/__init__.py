from entertainment_hub.schemas.booking import (
    AnyReservationRequest,
    AvailabilityResult,
    BookingCancelResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    EventReservationRequest,
    MovieReservationRequest,
    ReservationRequest,
    ReservationResponse,
    RestaurantReservationRequest,
)
from entertainment_hub.schemas.booking_details import (
    BookingDetails,
    EventBookingDetails,
    MovieBookingDetails,
    RestaurantBookingDetails,
)

__all__ = [
    "AnyReservationRequest", "AvailabilityResult", "BookingCancelResponse", "BookingListResponse",
    "BookingResponse", "BookingUpdate", "ReservationRequest", "ReservationResponse",
    "MovieReservationRequest", "EventReservationRequest", "RestaurantReservationRequest",
    "BookingDetails", "MovieBookingDetails", "EventBookingDetails", "RestaurantBookingDetails",
]
