from datetime import datetime
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import ErrorDetail
from rest_framework.test import APITestCase

from hotels.models import Hotel, Staff

from .exceptions import flatten_errors
from .money import ceil_amount, compute_tax, price_breakdown
from .numbering import generate_number, save_with_unique_number
from .testing import authenticate, make_hotel, make_staff


class MoneyTests(SimpleTestCase):
    def test_tax_is_rounded_up(self):
        self.assertEqual(compute_tax(Decimal('180'), 5), Decimal('9'))
        self.assertEqual(compute_tax(Decimal('100.50'), 5), Decimal('6'))
        self.assertEqual(compute_tax(Decimal('0'), 18), Decimal('0'))

    def test_breakdown(self):
        self.assertEqual(price_breakdown(180, 5), {
            'subtotal': Decimal('180'), 'tax': Decimal('9'), 'total': Decimal('189'),
        })
        self.assertEqual(price_breakdown('100.50', 5)['total'], Decimal('107'))

    def test_floats_do_not_leak_binary_noise(self):
        self.assertEqual(ceil_amount(0.1 + 0.2), Decimal('1'))
        self.assertEqual(ceil_amount(3.0), Decimal('3'))


class NumberingTests(TestCase):
    def test_format(self):
        when = datetime(2025, 7, 3, 9, 30)
        with mock.patch('hospitality.numbering.random.randint', return_value=42):
            self.assertEqual(generate_number('BKG', 4, now=when), 'BKG25070042')
            self.assertEqual(generate_number('ORD', 5, now=when), 'ORD250700042')

    def test_collision_is_retried(self):
        with mock.patch('hospitality.numbering.random.randint', return_value=42):
            taken = generate_number('HTL')
        Hotel.objects.create(name='Taken', code=taken)

        hotel = Hotel(name='New Hotel', code='')
        with mock.patch('hospitality.numbering.random.randint', side_effect=[42, 43]):
            save_with_unique_number(hotel, 'code', 'HTL')

        self.assertIsNotNone(hotel.pk)
        self.assertTrue(hotel.code.endswith('0043'))

    def test_insert_race_is_retried(self):
        with mock.patch('hospitality.numbering.random.randint', return_value=42):
            taken = generate_number('HTL')
        Hotel.objects.create(name='Taken', code=taken)

        hotel = Hotel(name='New Hotel', code='')
        # the pre-insert check misses the row written by the other writer
        with mock.patch('hospitality.numbering.random.randint', side_effect=[42, 43]), \
                mock.patch('django.db.models.query.QuerySet.exists', side_effect=[False, True, False]):
            save_with_unique_number(hotel, 'code', 'HTL')

        self.assertIsNotNone(hotel.pk)
        self.assertTrue(hotel.code.endswith('0043'))
        self.assertEqual(Hotel.objects.count(), 2)

    def test_existing_number_is_kept(self):
        hotel = Hotel(name='Grand', code='GRD')
        save_with_unique_number(hotel, 'code', 'HTL')
        self.assertEqual(Hotel.objects.get().code, 'GRD')


class ErrorFlatteningTests(SimpleTestCase):
    def test_nested_errors(self):
        detail = {
            'guest_phone': [ErrorDetail('Phone number must be 10 digits', code='invalid')],
            'non_field_errors': [ErrorDetail('Check-out must be after check-in', code='invalid')],
            'items': [{}, {'quantity': [ErrorDetail('Ensure this value is greater than or equal to 1.',
                                                    code='min_value')]}],
        }
        self.assertEqual(flatten_errors(detail), [
            'guest_phone: Phone number must be 10 digits',
            'Check-out must be after check-in',
            'items[1].quantity: Ensure this value is greater than or equal to 1.',
        ])

    def test_plain_message(self):
        self.assertEqual(flatten_errors('Room not found'), ['Room not found'])


class AuthenticationTests(APITestCase):
    def setUp(self):
        self.hotel = make_hotel()
        self.staff = make_staff(self.hotel, role=Staff.Role.CASHIER)
        self.url = reverse('room_list')

    def test_missing_key(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])
        self.assertIn('timestamp', response.data)

    def test_wrong_key(self):
        response = self.client.get(self.url, HTTP_X_API_KEY='nope', HTTP_X_STAFF_ID=str(self.staff.pk))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], 'Invalid API key')

    def test_staff_header_required(self):
        authenticate(self.client, self.staff)
        del self.client.defaults['HTTP_X_STAFF_ID']
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_staff(self):
        self.staff.is_active = False
        self.staff.save()
        authenticate(self.client, self.staff)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], 'Unknown or inactive staff member')

    def test_valid_staff(self):
        authenticate(self.client, self.staff)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['pagination']['currentPage'], 1)

    def test_not_found_uses_envelope(self):
        authenticate(self.client, self.staff)
        response = self.client.get(reverse('booking_detail', kwargs={'booking_id': 999}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Booking not found')
