"""API routers."""

from arts_booking.routers.bookings import router as bookings_router
from arts_booking.routers.conflicts import router as conflicts_router
