"""
Room availability: interval overlap between bookings on the same room.

Intervals are half-open, ``[check_in, check_out)``: a stay that ends at
11:00 never collides with one that starts at 11:00.
"""

import math
from datetime import timedelta

from .models import Booking, BookingStatus

# Bookings that hold the room. Pending, cancelled, no-show and checked-out
# bookings never block a new one.
BLOCKING_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
    BookingStatus.RESERVED,
)


def intervals_overlap(new_start, new_end, existing_start, existing_end):
    starts_inside = existing_start <= new_start < existing_end
    ends_inside = existing_start < new_end <= existing_end
    contains = new_start <= existing_start and existing_end <= new_end
    return starts_inside or ends_inside or contains


def find_conflicting_booking(room, check_in, check_out, exclude_id=None):
    """Return the first blocking booking on `room` that overlaps the interval, or None"""
    candidates = Booking.objects.filter(room=room, status__in=BLOCKING_STATUSES).order_by('check_in')
    if exclude_id is not None:
        candidates = candidates.exclude(pk=exclude_id)

    for booking in candidates:
        if intervals_overlap(check_in, check_out, booking.check_in, booking.check_out):
            return booking
    return None


def stay_duration_days(check_in, check_out):
    """Nights charged for a daily stay; a partial day counts as a full one"""
    return math.ceil((check_out - check_in) / timedelta(days=1))


def hourly_window_matches(check_in, check_out, hours, tolerance_minutes):
    expected = check_in + timedelta(hours=hours)
    return abs(check_out - expected) <= timedelta(minutes=tolerance_minutes)
