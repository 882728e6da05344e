"""
Pydantic schemas for booking request/response validation.

Reservation requests are a tagged union on `booking_type`. Quantity and
seat-list sanity is checked by the booking core (InvalidRequestError), not
here, so direct callers of the core get the same rules as HTTP clients.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from entertainment_hub.models.booking import BookingStatus, BookingType, PaymentStatus


class MovieReservationRequest(BaseModel):
    booking_type: Literal["movie"] = "movie"
    showtime_id: int
    seats: List[str]
    total_amount: Decimal = Field(..., ge=0)
    special_requests: Optional[str] = Field(None, max_length=1000)


class EventReservationRequest(BaseModel):
    booking_type: Literal["event"] = "event"
    event_id: int
    ticket_type_id: int
    quantity: int
    total_amount: Decimal = Field(..., ge=0)
    special_requests: Optional[str] = Field(None, max_length=1000)


class RestaurantReservationRequest(BaseModel):
    booking_type: Literal["restaurant"] = "restaurant"
    restaurant_id: int
    booking_date: date
    booking_time: time
    party_size: int
    special_requests: Optional[str] = Field(None, max_length=1000)


AnyReservationRequest = Union[
    MovieReservationRequest, EventReservationRequest, RestaurantReservationRequest
]

ReservationRequest = Annotated[AnyReservationRequest, Field(discriminator="booking_type")]


class ReservationResponse(BaseModel):
    message: str
    booking_id: int
    confirmation_code: str
    status: BookingStatus


class BookingResponse(BaseModel):
    id: int
    user_id: int
    booking_type: BookingType
    reference_id: int
    status: BookingStatus
    payment_status: PaymentStatus
    booking_date: datetime
    quantity: int
    total_amount: Decimal
    special_requests: Optional[str]
    booking_details: Dict[str, Any]
    confirmation_code: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class BookingUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    special_requests: Optional[str] = Field(None, max_length=1000)

    def has_changes(self) -> bool:
        return bool(self.model_dump(exclude_unset=True, exclude_none=True))


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: BookingStatus


class AvailabilityResult(BaseModel):
    valid: bool
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
