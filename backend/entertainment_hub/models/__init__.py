from entertainment_hub.models.booking import Booking, BookingStatus, BookingType, PaymentStatus
from entertainment_hub.models.event import Event, EventTicket
from entertainment_hub.models.movie import Movie, Showtime
from entertainment_hub.models.restaurant import Restaurant

__all__ = [
    "Booking", "BookingStatus", "BookingType", "PaymentStatus",
    "Event", "EventTicket",
    "Movie", "Showtime",
    "Restaurant",
]
