from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from hospitality.exceptions import BadRequest, Conflict, Forbidden
from hospitality.testing import authenticate, make_hotel, make_staff
from hotels.models import Staff
from notifications.sink import EventSink, BOOKING_CREATED

from . import services
from .availability import find_conflicting_booking, intervals_overlap, stay_duration_days
from .models import Booking, BookingStatus, PaymentStatus, Room, RoomStatus


def future(days=0, hours=0):
    start = (timezone.now() + timedelta(days=30)).replace(hour=12, minute=0, second=0, microsecond=0)
    return start + timedelta(days=days, hours=hours)


def booking_payload(room, check_in, check_out=None, **overrides):
    data = {
        'room': room.pk,
        'guest_name': 'Asha Rao',
        'guest_phone': '9876543210',
        'adults': 2,
        'children': 0,
        'booking_type': 'daily',
        'check_in': check_in,
        'check_out': check_out,
    }
    data.update(overrides)
    return data


class IntervalOverlapTests(TestCase):
    """Half-open interval overlap"""

    def test_disjoint_intervals_do_not_overlap(self):
        self.assertFalse(intervals_overlap(future(0), future(1), future(2), future(3)))
        self.assertFalse(intervals_overlap(future(2), future(3), future(0), future(1)))

    def test_touching_boundary_is_not_a_conflict(self):
        # [a, b) and [b, c) share only the boundary instant
        self.assertFalse(intervals_overlap(future(1), future(2), future(0), future(1)))
        self.assertFalse(intervals_overlap(future(0), future(1), future(1), future(2)))

    def test_each_overlap_case(self):
        existing = (future(1), future(3))
        # new start inside existing
        self.assertTrue(intervals_overlap(future(2), future(4), *existing))
        # new end inside existing
        self.assertTrue(intervals_overlap(future(0), future(2), *existing))
        # new contains existing
        self.assertTrue(intervals_overlap(future(0), future(4), *existing))
        # new inside existing
        self.assertTrue(intervals_overlap(future(1, 1), future(2), *existing))
        # identical
        self.assertTrue(intervals_overlap(future(1), future(3), *existing))

    def test_overlap_matches_closed_form(self):
        points = [future(0, h) for h in range(0, 6)]
        for a in points:
            for b in points:
                if b <= a:
                    continue
                for c in points:
                    for d in points:
                        if d <= c:
                            continue
                        self.assertEqual(intervals_overlap(a, b, c, d), a < d and c < b)

    def test_partial_day_counts_as_full_day(self):
        self.assertEqual(stay_duration_days(future(0), future(2)), 2)
        self.assertEqual(stay_duration_days(future(0), future(2, 1)), 3)
        self.assertEqual(stay_duration_days(future(0), future(0, 3)), 1)


@override_settings(GST_RATE=Decimal('5'))
class BookingServiceTests(TestCase):
    def setUp(self):
        self.hotel = make_hotel()
        self.manager = make_staff(self.hotel)
        self.room = Room.objects.create(
            hotel=self.hotel, room_number='r101', base_price=Decimal('1000'),
            capacity_adults=2, capacity_children=1,
            extra_adult_charge=Decimal('300'), extra_child_charge=Decimal('150'),
        )

    def book(self, check_in, check_out=None, room=None, **overrides):
        return services.create_booking(self.manager, booking_payload(room or self.room, check_in, check_out, **overrides))

    def test_room_number_is_normalized_and_hourly_rate_defaults(self):
        self.assertEqual(self.room.room_number, 'R101')
        self.assertEqual(self.room.hourly_rate, Decimal('400'))

    def test_daily_pricing(self):
        room = Room.objects.create(hotel=self.hotel, room_number='201', base_price=Decimal('2000'))
        pricing = services.calculate_booking_pricing(room, 'daily', future(0), future(2), adults=2,
                                                     gst_rate=Decimal('5'))
        self.assertEqual(pricing['duration'], 2)
        self.assertEqual(pricing['subtotal'], Decimal('4000'))
        self.assertEqual(pricing['tax'], Decimal('200'))
        self.assertEqual(pricing['total'], Decimal('4200'))

    def test_pricing_uses_the_rate_passed_in(self):
        pricing = services.calculate_booking_pricing(self.room, 'daily', future(0), future(1),
                                                     gst_rate=Decimal('12'))
        self.assertEqual(pricing['tax'], Decimal('120'))
        self.assertEqual(pricing['total'], Decimal('1120'))

    def test_tax_is_rounded_up(self):
        room = Room.objects.create(hotel=self.hotel, room_number='202', base_price=Decimal('999'))
        pricing = services.calculate_booking_pricing(room, 'daily', future(0), future(1), gst_rate=Decimal('5'))
        # 999 * 5% = 49.95
        self.assertEqual(pricing['tax'], Decimal('50'))
        self.assertEqual(pricing['total'], Decimal('1049'))

    def test_extra_guest_charges_per_day(self):
        pricing = services.calculate_booking_pricing(self.room, 'daily', future(0), future(2),
                                                     adults=3, children=2, gst_rate=Decimal('0'))
        # one extra adult and one extra child for two days
        self.assertEqual(pricing['extra_charges'], Decimal('900'))
        self.assertEqual(pricing['total'], Decimal('2900'))

    def test_hourly_pricing_ignores_extra_guests(self):
        pricing = services.calculate_booking_pricing(self.room, 'hourly', future(0), future(0, 3),
                                                     adults=4, gst_rate=Decimal('5'), hours=3)
        self.assertEqual(pricing['room_charges'], Decimal('1200'))
        self.assertEqual(pricing['extra_charges'], Decimal('0'))
        self.assertEqual(pricing['total'], Decimal('1260'))

    def test_create_booking_reserves_room(self):
        booking = self.book(future(0), future(2))

        self.assertEqual(booking.status, BookingStatus.CONFIRMED)
        self.assertRegex(booking.booking_number, r'^BKG\d{8}$')
        self.assertEqual(booking.room_charges, Decimal('2000'))
        self.assertEqual(booking.tax, Decimal('100'))
        self.assertEqual(booking.total, Decimal('2100'))
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, RoomStatus.RESERVED)
        self.assertEqual(self.room.current_booking, booking)

    def test_room_must_be_available(self):
        self.room.status = RoomStatus.MAINTENANCE
        self.room.save()
        with self.assertRaises(BadRequest):
            self.book(future(0), future(1))
        self.assertFalse(Booking.objects.exists())

    def test_overlapping_booking_is_rejected_with_conflicting_number(self):
        first = self.book(future(0), future(2))
        # the room is reserved after a booking; free it so only the overlap check applies
        Room.objects.filter(pk=self.room.pk).update(status=RoomStatus.AVAILABLE)

        with self.assertRaises(Conflict) as ctx:
            self.book(future(1), future(3))
        self.assertIn(first.booking_number, str(ctx.exception.detail))
        self.assertEqual(Booking.objects.count(), 1)

    def test_back_to_back_bookings_are_allowed(self):
        self.book(future(0), future(2))
        Room.objects.filter(pk=self.room.pk).update(status=RoomStatus.AVAILABLE)

        second = self.book(future(2), future(3))
        self.assertEqual(second.status, BookingStatus.CONFIRMED)

    def test_non_blocking_statuses_do_not_conflict(self):
        for booking_status in (BookingStatus.PENDING, BookingStatus.CANCELLED,
                               BookingStatus.NO_SHOW, BookingStatus.CHECKED_OUT):
            Booking.objects.create(
                booking_number=f'BKG-{booking_status}', hotel=self.hotel, room=self.room,
                guest_name='Old Guest', guest_phone='9000000000', check_in=future(0), check_out=future(2),
                room_charges=0, subtotal=0, tax=0, total=0, status=booking_status,
            )
        self.assertIsNone(find_conflicting_booking(self.room, future(0), future(2)))

    def test_reserved_status_blocks(self):
        Booking.objects.create(
            booking_number='BKG-legacy', hotel=self.hotel, room=self.room,
            guest_name='Old Guest', guest_phone='9000000000', check_in=future(0), check_out=future(2),
            room_charges=0, subtotal=0, tax=0, total=0, status=BookingStatus.RESERVED,
        )
        with self.assertRaises(Conflict):
            self.book(future(1), future(3))

    def test_hourly_booking_defaults_check_out(self):
        booking = self.book(future(0), booking_type='hourly', hours=3)
        self.assertEqual(booking.check_out, future(0, 3))
        self.assertEqual(booking.hours, 3)
        self.assertEqual(booking.total, Decimal('1260'))

    def test_hourly_booking_tolerates_five_minutes(self):
        booking = self.book(future(0), future(0, 3) + timedelta(minutes=5), booking_type='hourly', hours=3)
        self.assertEqual(booking.booking_type, 'hourly')

    def test_hourly_booking_outside_tolerance_fails(self):
        with self.assertRaises(BadRequest):
            self.book(future(0), future(0, 3) + timedelta(minutes=6), booking_type='hourly', hours=3)
        with self.assertRaises(BadRequest):
            self.book(future(0), future(0, 2), booking_type='hourly', hours=3)

    def test_hourly_booking_requires_hours(self):
        with self.assertRaises(BadRequest):
            self.book(future(0), future(0, 3), booking_type='hourly', hours=None)

    def test_hourly_booking_requires_room_support(self):
        self.room.allow_hourly_booking = False
        self.room.save()
        with self.assertRaises(BadRequest):
            self.book(future(0), booking_type='hourly', hours=2)

    def test_check_out_must_follow_check_in(self):
        with self.assertRaises(BadRequest):
            self.book(future(2), future(1))

    def test_room_from_another_hotel_is_rejected(self):
        other = make_hotel(code='OTH', name='Other')
        room = Room.objects.create(hotel=other, room_number='1', base_price=Decimal('500'))
        with self.assertRaises(BadRequest):
            self.book(future(0), future(1), room=room)

    def test_advance_payment_sets_payment_status(self):
        booking = self.book(future(0), future(2), advance_payment=Decimal('500'))
        self.assertEqual(booking.payment_status, PaymentStatus.PARTIALLY_PAID)

        Room.objects.filter(pk=self.room.pk).update(status=RoomStatus.AVAILABLE)
        with self.assertRaises(BadRequest):
            self.book(future(5), future(6), advance_payment=Decimal('5000'))

    def test_full_stay_lifecycle(self):
        booking = self.book(future(0), future(2))
        self.assertEqual(booking.total, Decimal('2100'))

        booking = services.check_in_guest(self.manager, booking.pk)
        self.room.refresh_from_db()
        self.assertEqual(booking.status, BookingStatus.CHECKED_IN)
        self.assertEqual(booking.checked_in_by, self.manager)
        self.assertIsNotNone(booking.actual_check_in)
        self.assertEqual(self.room.status, RoomStatus.OCCUPIED)

        with self.assertRaises(BadRequest):
            services.check_out_guest(self.manager, booking.pk)

        booking = services.record_payment(self.manager, booking.pk, Decimal('2100'))
        self.assertEqual(booking.payment_status, PaymentStatus.PAID)

        booking = services.check_out_guest(self.manager, booking.pk)
        self.room.refresh_from_db()
        self.assertEqual(booking.status, BookingStatus.CHECKED_OUT)
        self.assertEqual(self.room.status, RoomStatus.CLEANING)
        self.assertIsNone(self.room.current_booking)

        with self.assertRaises(BadRequest):
            services.check_in_guest(self.manager, booking.pk)

    def test_double_check_in_fails(self):
        booking = self.book(future(0), future(1))
        services.check_in_guest(self.manager, booking.pk)
        with self.assertRaises(BadRequest):
            services.check_in_guest(self.manager, booking.pk)

    def test_payment_rules(self):
        booking = self.book(future(0), future(2))

        booking = services.record_payment(self.manager, booking.pk, Decimal('1000'))
        self.assertEqual(booking.payment_status, PaymentStatus.PARTIALLY_PAID)
        self.assertEqual(booking.balance_due, Decimal('1100'))

        with self.assertRaises(BadRequest):
            services.record_payment(self.manager, booking.pk, Decimal('1101'))
        with self.assertRaises(BadRequest):
            services.record_payment(self.manager, booking.pk, Decimal('0'))

        booking.refresh_from_db()
        self.assertEqual(booking.advance_payment, Decimal('1000'))

    def test_cancel_releases_room(self):
        booking = self.book(future(0), future(2))
        booking = services.cancel_booking(self.manager, booking.pk)
        self.room.refresh_from_db()

        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertEqual(self.room.status, RoomStatus.AVAILABLE)
        self.assertIsNone(self.room.current_booking)

        with self.assertRaises(BadRequest):
            services.cancel_booking(self.manager, booking.pk)
        with self.assertRaises(BadRequest):
            services.record_payment(self.manager, booking.pk, Decimal('10'))

    def test_no_show_only_after_check_in_time(self):
        booking = self.book(future(0), future(1))
        with self.assertRaises(BadRequest):
            services.mark_no_show(self.manager, booking.pk)

        booking = services.mark_no_show(self.manager, booking.pk, now=future(0, 1))
        self.room.refresh_from_db()
        self.assertEqual(booking.status, BookingStatus.NO_SHOW)
        self.assertEqual(self.room.status, RoomStatus.AVAILABLE)

    def test_other_hotel_staff_cannot_touch_booking(self):
        booking = self.book(future(0), future(1))
        outsider = make_staff(make_hotel(code='OTH', name='Other'), role=Staff.Role.CASHIER)
        with self.assertRaises(Forbidden):
            services.check_in_guest(outsider, booking.pk)

    def test_super_admin_must_name_hotel(self):
        admin = make_staff(None, role=Staff.Role.SUPER_ADMIN)
        with self.assertRaises(BadRequest):
            services.create_booking(admin, booking_payload(self.room, future(0), future(1)))

        booking = services.create_booking(admin, booking_payload(self.room, future(0), future(1), hotel=self.hotel.pk))
        self.assertEqual(booking.hotel, self.hotel)

    def test_created_event_is_published_on_commit(self):
        with mock.patch.object(EventSink, 'publish', return_value=True) as publish:
            with self.captureOnCommitCallbacks(execute=True):
                booking = self.book(future(0), future(1))

        publish.assert_called_once()
        event, data = publish.call_args[0]
        self.assertEqual(event, BOOKING_CREATED)
        self.assertEqual(data['booking_number'], booking.booking_number)

    def test_manual_room_status(self):
        room = services.update_room_status(self.manager, self.room.pk, RoomStatus.MAINTENANCE)
        self.assertEqual(room.status, RoomStatus.MAINTENANCE)

        services.update_room_status(self.manager, self.room.pk, RoomStatus.AVAILABLE)
        self.book(future(0), future(1))
        with self.assertRaises(BadRequest):
            services.update_room_status(self.manager, self.room.pk, RoomStatus.AVAILABLE)


@override_settings(GST_RATE=Decimal('5'))
class BookingAPITests(APITestCase):
    """Booking endpoints end to end"""

    def setUp(self):
        self.hotel = make_hotel()
        self.cashier = make_staff(self.hotel, role=Staff.Role.CASHIER)
        self.room = Room.objects.create(hotel=self.hotel, room_number='101', base_price=Decimal('1000'),
                                        capacity_adults=2)
        authenticate(self.client, self.cashier)

    def create_booking(self, **overrides):
        payload = booking_payload(self.room, future(0).isoformat(), future(2).isoformat())
        payload.update(overrides)
        return self.client.post(reverse('booking_list'), payload, format='json')

    def test_end_to_end_stay(self):
        response = self.create_booking()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        booking = response.data['data']
        self.assertEqual(Decimal(booking['room_charges']), Decimal('2000'))
        self.assertEqual(Decimal(booking['tax']), Decimal('100'))
        self.assertEqual(Decimal(booking['total']), Decimal('2100'))

        url = reverse('booking_checkin', kwargs={'booking_id': booking['id']})
        self.assertEqual(self.client.post(url).status_code, status.HTTP_200_OK)
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, RoomStatus.OCCUPIED)

        checkout_url = reverse('booking_checkout', kwargs={'booking_id': booking['id']})
        response = self.client.post(checkout_url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

        payment_url = reverse('booking_payment', kwargs={'booking_id': booking['id']})
        response = self.client.patch(payment_url, {'amount': '2100'}, format='json')
        self.assertEqual(response.data['data']['payment_status'], PaymentStatus.PAID)

        response = self.client.post(checkout_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], BookingStatus.CHECKED_OUT)
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, RoomStatus.CLEANING)

    def test_conflict_returns_409(self):
        self.create_booking()
        Room.objects.filter(pk=self.room.pk).update(status=RoomStatus.AVAILABLE)

        response = self.create_booking(check_in=future(1).isoformat(), check_out=future(3).isoformat())
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('BKG', response.data['message'])

    def test_validation_errors_are_listed_per_field(self):
        response = self.create_booking(guest_phone='123', adults=0)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Validation failed')
        self.assertIn('guest_phone: Phone number must be 10 digits', response.data['errors'])
        self.assertIn('adults: At least one adult is required', response.data['errors'])

    def test_check_in_in_the_past_is_rejected(self):
        past = timezone.now() - timedelta(days=3)
        response = self.create_booking(check_in=past.isoformat(), check_out=future(1).isoformat())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_kitchen_staff_cannot_book(self):
        authenticate(self.client, make_staff(self.hotel, role=Staff.Role.KITCHEN_STAFF))
        response = self.create_booking()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_api_key(self):
        self.client.defaults.pop('HTTP_X_API_KEY')
        response = self.client.get(reverse('booking_list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_is_scoped_to_hotel(self):
        self.create_booking()
        other = make_hotel(code='OTH', name='Other')
        authenticate(self.client, make_staff(other, role=Staff.Role.MANAGER))

        response = self.client.get(reverse('booking_list'))
        self.assertEqual(response.data['pagination']['totalItems'], 0)

    def test_non_numeric_filters_are_rejected(self):
        response = self.client.get(reverse('booking_list'), {'room': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'room must be a numeric id')

        authenticate(self.client, make_staff(role=Staff.Role.SUPER_ADMIN))
        response = self.client.get(reverse('room_list'), {'hotel': 'grand'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_manual_room_status_rejects_booking_states(self):
        url = reverse('room_status', kwargs={'room_id': self.room.pk})
        response = self.client.patch(url, {'status': 'occupied'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {'status': 'cleaning'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], RoomStatus.CLEANING)
