"""
Typed booking_details snapshots, one variant per booking_type.

The serialized key names are an external contract: API clients and the
compensation path both read them.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from entertainment_hub.core.exceptions import PersistenceError
from entertainment_hub.models.booking import BookingType


class MovieBookingDetails(BaseModel):
    showtime_id: int
    movie_title: str
    theater_name: Optional[str] = None
    showtime: datetime
    seats: List[str]
    poster_url: Optional[str] = None


class EventBookingDetails(BaseModel):
    event_id: int
    event_title: str
    event_date: date
    event_time: Optional[time] = None
    venue_name: Optional[str] = None
    location: Optional[str] = None
    ticket_type: str
    ticket_type_id: int


class RestaurantBookingDetails(BaseModel):
    restaurant_id: int
    restaurant_name: str
    restaurant_address: Optional[str] = None
    party_size: int
    booking_date: date
    booking_time: time


BookingDetails = Union[MovieBookingDetails, EventBookingDetails, RestaurantBookingDetails]

_DETAILS_BY_TYPE: Dict[BookingType, Type[BaseModel]] = {
    BookingType.MOVIE: MovieBookingDetails,
    BookingType.EVENT: EventBookingDetails,
    BookingType.RESTAURANT: RestaurantBookingDetails,
}


def parse_booking_details(booking_type: str, payload: Dict[str, Any]) -> BookingDetails:
    """Rebuild the typed snapshot stored on a booking row."""
    model = _DETAILS_BY_TYPE[BookingType(booking_type)]
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise PersistenceError(
            "Stored booking details are unreadable",
            details={"booking_type": booking_type},
        ) from exc


def dump_booking_details(details: BookingDetails) -> Dict[str, Any]:
    return details.model_dump(mode="json")
