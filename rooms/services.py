"""
Booking engine: creation with overlap protection, pricing, and the
check-in / check-out / cancel / no-show / payment transitions.

Every operation that touches both a booking and its room runs inside a
single transaction with the room row locked, so the availability check and
the writes that depend on it cannot interleave with another request for the
same room.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from hospitality.exceptions import BadRequest, Conflict, NotFound
from hospitality.money import ZERO, get_gst_rate, price_breakdown, to_decimal
from hospitality.numbering import save_with_unique_number
from hotels.access import ensure_hotel_access, resolve_hotel
from notifications import sink

from .availability import find_conflicting_booking, hourly_window_matches, stay_duration_days
from .models import Booking, BookingStatus, BookingType, PaymentStatus, Room, RoomStatus

logger = logging.getLogger(__name__)

BOOKING_NUMBER_PREFIX = 'BKG'
BOOKING_NUMBER_DIGITS = 4

# action -> (statuses it may start from, resulting status)
BOOKING_TRANSITIONS = {
    'check_in': ((BookingStatus.CONFIRMED, BookingStatus.RESERVED), BookingStatus.CHECKED_IN),
    'check_out': ((BookingStatus.CHECKED_IN,), BookingStatus.CHECKED_OUT),
    'cancel': ((BookingStatus.CONFIRMED, BookingStatus.RESERVED), BookingStatus.CANCELLED),
    'no_show': ((BookingStatus.CONFIRMED, BookingStatus.RESERVED), BookingStatus.NO_SHOW),
}


def can_transition(booking, action):
    sources, _ = BOOKING_TRANSITIONS[action]
    return booking.status in sources


def calculate_booking_pricing(room, booking_type, check_in, check_out, adults=1, children=0,
                              gst_rate=None, hours=None):
    """
    Price a stay on `room`.

    Daily stays charge base_price per started day plus extra-guest charges
    beyond the room's capacity; hourly stays charge hourly_rate per hour with
    no extra-guest charges.
    """
    gst_rate = get_gst_rate() if gst_rate is None else gst_rate

    if booking_type == BookingType.HOURLY:
        duration = hours
        room_charges = to_decimal(room.hourly_rate) * hours
        extra_charges = ZERO
    else:
        duration = stay_duration_days(check_in, check_out)
        room_charges = to_decimal(room.base_price) * duration
        extra_charges = ZERO
        if adults > room.capacity_adults:
            extra_charges += (adults - room.capacity_adults) * to_decimal(room.extra_adult_charge) * duration
        if children > room.capacity_children:
            extra_charges += (children - room.capacity_children) * to_decimal(room.extra_child_charge) * duration

    breakdown = price_breakdown(room_charges + extra_charges, gst_rate)
    return {
        'duration': duration,
        'room_charges': room_charges,
        'extra_charges': extra_charges,
        'discount': ZERO,
        'subtotal': breakdown['subtotal'],
        'tax': breakdown['tax'],
        'total': breakdown['total'],
    }


def derive_payment_status(paid, total):
    if paid >= total:
        return PaymentStatus.PAID
    if paid == 0:
        return PaymentStatus.PENDING
    return PaymentStatus.PARTIALLY_PAID


def _resolve_window(booking_type, check_in, check_out, hours):
    """Validate the requested dates and return the (check_in, check_out) to store"""
    if booking_type == BookingType.HOURLY:
        if not hours or hours <= 0:
            raise BadRequest('Hours are required for hourly bookings')
        if check_out is None:
            check_out = check_in + timedelta(hours=hours)

    if check_out is None:
        raise BadRequest('Check-out date is required')
    if check_in >= check_out:
        raise BadRequest('Check-out date must be after check-in date')

    if booking_type == BookingType.HOURLY:
        tolerance = getattr(settings, 'HOURLY_TOLERANCE_MINUTES', 5)
        if not hourly_window_matches(check_in, check_out, hours, tolerance):
            raise BadRequest(f'Check-out must be exactly {hours} hour(s) after check-in')

    return check_in, check_out


def _serialize(booking):
    from .serializers import BookingSerializer
    return BookingSerializer(booking).data


def create_booking(actor, data, gst_rate=None):
    """
    Create a confirmed booking and reserve its room.

    `data` is the validated payload of CreateBookingSerializer.
    """
    hotel = resolve_hotel(actor, data.get('hotel'))
    booking_type = data.get('booking_type') or BookingType.DAILY
    hours = data.get('hours')
    adults = data.get('adults', 1)
    children = data.get('children', 0)

    with transaction.atomic():
        try:
            room = Room.objects.select_for_update().get(pk=data['room'])
        except Room.DoesNotExist:
            raise NotFound('Room not found')

        if room.hotel_id != hotel.id:
            raise BadRequest('Room does not belong to this hotel')

        if booking_type == BookingType.HOURLY and not room.supports_hourly_booking():
            raise BadRequest('Hourly booking is not available for this room')

        if room.status != RoomStatus.AVAILABLE:
            raise BadRequest('Room is not available')

        check_in, check_out = _resolve_window(booking_type, data['check_in'], data.get('check_out'), hours)

        conflict = find_conflicting_booking(room, check_in, check_out)
        if conflict is not None:
            logger.info("Booking rejected for room %s: overlaps %s", room.room_number, conflict.booking_number)
            raise Conflict(f'Room is already booked for the selected time (booking {conflict.booking_number})')

        pricing = calculate_booking_pricing(
            room, booking_type, check_in, check_out,
            adults=adults, children=children, gst_rate=gst_rate, hours=hours,
        )

        advance = to_decimal(data.get('advance_payment') or 0)
        if advance > pricing['total']:
            raise BadRequest('Advance payment exceeds total amount')

        booking = Booking(
            hotel=hotel,
            room=room,
            guest_name=data['guest_name'].strip(),
            guest_phone=data['guest_phone'],
            guest_email=data.get('guest_email', ''),
            guest_address=data.get('guest_address', ''),
            id_proof_type=data.get('id_proof_type', ''),
            id_proof_number=data.get('id_proof_number', ''),
            adults=adults,
            children=children,
            booking_type=booking_type,
            hours=hours if booking_type == BookingType.HOURLY else None,
            check_in=check_in,
            check_out=check_out,
            room_charges=pricing['room_charges'],
            extra_charges=pricing['extra_charges'],
            discount=pricing['discount'],
            subtotal=pricing['subtotal'],
            tax=pricing['tax'],
            total=pricing['total'],
            status=BookingStatus.CONFIRMED,
            advance_payment=advance,
            payment_status=derive_payment_status(advance, pricing['total']),
            special_requests=data.get('special_requests', ''),
            created_by=actor,
        )
        save_with_unique_number(booking, 'booking_number', BOOKING_NUMBER_PREFIX, BOOKING_NUMBER_DIGITS)

        room.status = RoomStatus.RESERVED
        room.current_booking = booking
        room.save(update_fields=['status', 'current_booking', 'updated_at'])

        logger.info("Booking %s created for room %s", booking.booking_number, room.room_number)
        sink.emit(sink.BOOKING_CREATED, _serialize(booking))

    return booking


def get_booking(actor, booking_id):
    try:
        booking = Booking.objects.select_related('hotel', 'room').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound('Booking not found')
    ensure_hotel_access(actor, booking.hotel_id, 'Access denied to this booking')
    return booking


def _lock_booking_and_room(actor, booking_id):
    """Lock the room first, then the booking, matching the order create_booking uses"""
    booking = get_booking(actor, booking_id)
    room = Room.objects.select_for_update().get(pk=booking.room_id)
    booking = Booking.objects.select_for_update().get(pk=booking.pk)
    return booking, room


def _release_room(room, booking):
    """Make the room bookable again if it was being held for this booking"""
    if room.current_booking_id not in (None, booking.pk):
        return
    room.status = RoomStatus.AVAILABLE
    room.current_booking = None
    room.save(update_fields=['status', 'current_booking', 'updated_at'])


def check_in_guest(actor, booking_id):
    with transaction.atomic():
        booking, room = _lock_booking_and_room(actor, booking_id)

        if booking.status == BookingStatus.CHECKED_IN:
            raise BadRequest('Guest is already checked in')
        if not can_transition(booking, 'check_in'):
            raise BadRequest('Booking must be confirmed to check in')

        booking.status = BookingStatus.CHECKED_IN
        booking.actual_check_in = timezone.now()
        booking.checked_in_by = actor
        booking.save(update_fields=['status', 'actual_check_in', 'checked_in_by', 'updated_at'])

        room.status = RoomStatus.OCCUPIED
        room.current_booking = booking
        room.save(update_fields=['status', 'current_booking', 'updated_at'])

        logger.info("Booking %s checked in", booking.booking_number)
        sink.emit(sink.BOOKING_CHECKED_IN, _serialize(booking))

    return booking


def check_out_guest(actor, booking_id):
    with transaction.atomic():
        booking, room = _lock_booking_and_room(actor, booking_id)

        if not can_transition(booking, 'check_out'):
            raise BadRequest('Guest must be checked in to check out')
        if booking.payment_status != PaymentStatus.PAID:
            raise BadRequest('Complete payment before checkout')

        booking.status = BookingStatus.CHECKED_OUT
        booking.actual_check_out = timezone.now()
        booking.checked_out_by = actor
        booking.save(update_fields=['status', 'actual_check_out', 'checked_out_by', 'updated_at'])

        room.status = RoomStatus.CLEANING
        room.current_booking = None
        room.save(update_fields=['status', 'current_booking', 'updated_at'])

        logger.info("Booking %s checked out", booking.booking_number)
        sink.emit(sink.BOOKING_CHECKED_OUT, _serialize(booking))

    return booking


def cancel_booking(actor, booking_id):
    with transaction.atomic():
        booking, room = _lock_booking_and_room(actor, booking_id)

        if not can_transition(booking, 'cancel'):
            raise BadRequest('Only confirmed or reserved bookings can be cancelled')

        booking.status = BookingStatus.CANCELLED
        booking.save(update_fields=['status', 'updated_at'])
        _release_room(room, booking)

        logger.info("Booking %s cancelled", booking.booking_number)
        sink.emit(sink.BOOKING_CANCELLED, _serialize(booking))

    return booking


def mark_no_show(actor, booking_id, now=None):
    now = now or timezone.now()
    with transaction.atomic():
        booking, room = _lock_booking_and_room(actor, booking_id)

        if not can_transition(booking, 'no_show'):
            raise BadRequest('Booking cannot be marked as no-show')
        if booking.check_in > now:
            raise BadRequest('Cannot mark no-show before check-in time')

        booking.status = BookingStatus.NO_SHOW
        booking.save(update_fields=['status', 'updated_at'])
        _release_room(room, booking)

        logger.info("Booking %s marked no-show", booking.booking_number)
        sink.emit(sink.BOOKING_NO_SHOW, _serialize(booking))

    return booking


def record_payment(actor, booking_id, amount):
    amount = to_decimal(amount)
    if amount <= 0:
        raise BadRequest('Valid payment amount is required')

    with transaction.atomic():
        booking = get_booking(actor, booking_id)
        booking = Booking.objects.select_for_update().get(pk=booking.pk)

        if booking.status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
            raise BadRequest('Cannot record payment for a cancelled or no-show booking')

        paid = booking.advance_payment + amount
        if paid > booking.total:
            raise BadRequest('Payment exceeds total amount')

        booking.advance_payment = paid
        booking.payment_status = derive_payment_status(paid, booking.total)
        booking.save(update_fields=['advance_payment', 'payment_status', 'updated_at'])

        logger.info("Booking %s payment %s recorded (%s)", booking.booking_number, amount, booking.payment_status)
        sink.emit(sink.BOOKING_PAYMENT, _serialize(booking))

    return booking


def create_room(actor, data, hotel_id=None):
    """`data` is the validated payload of RoomSerializer"""
    hotel = resolve_hotel(actor, hotel_id)
    room_number = (data.get('room_number') or '').strip().upper()
    if Room.objects.filter(hotel=hotel, room_number=room_number).exists():
        raise Conflict(f'Room {room_number} already exists in this hotel')

    room = Room.objects.create(hotel=hotel, created_by=actor, **data)
    logger.info("Room %s created in hotel %s", room.room_number, hotel.code)
    return room


def update_room_status(actor, room_id, new_status):
    """Manual housekeeping change; reserved and occupied rooms are managed by their booking"""
    with transaction.atomic():
        try:
            room = Room.objects.select_for_update().get(pk=room_id)
        except Room.DoesNotExist:
            raise NotFound('Room not found')
        ensure_hotel_access(actor, room.hotel_id, 'Access denied to this room')

        if room.status in (RoomStatus.RESERVED, RoomStatus.OCCUPIED):
            raise BadRequest(f'Room is {room.status}; its status follows the active booking')

        room.status = new_status
        room.save(update_fields=['status', 'updated_at'])
        logger.info("Room %s status set to %s", room.room_number, new_status)

    return room
