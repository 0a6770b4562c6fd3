from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from hospitality.exceptions import BadRequest, Conflict, Forbidden
from hospitality.numbering import save_with_unique_number
from hospitality.testing import authenticate, make_hotel, make_staff
from hotels.models import Staff
from notifications.sink import EventSink, INVOICE_GENERATED, INVOICE_PAYMENT
from pos.models import Order, OrderItem, OrderPaymentStatus, OrderStatus, OrderType
from rooms import services as room_services
from rooms.models import Room

from . import services
from .models import Invoice, InvoiceStatus, LineType, PaymentMethod


def future(days=0):
    start = (timezone.now() + timedelta(days=30)).replace(hour=12, minute=0, second=0, microsecond=0)
    return start + timedelta(days=days)


class BillingFixtureMixin:
    def make_stay(self):
        self.hotel = make_hotel()
        self.manager = make_staff(self.hotel)
        self.cashier = make_staff(self.hotel, role=Staff.Role.CASHIER)
        self.room = Room.objects.create(hotel=self.hotel, room_number='101', base_price=Decimal('2000'),
                                        extra_adult_charge=Decimal('500'))
        # two nights: 4000 + 5% GST
        self.booking = self.book(self.room, advance_payment=Decimal('500'))

    def book(self, room, **overrides):
        data = {
            'room': room.pk,
            'guest_name': 'Asha Rao',
            'guest_phone': '9876543210',
            'adults': 2,
            'check_in': future(0),
            'check_out': future(2),
        }
        data.update(overrides)
        return room_services.create_booking(self.manager, data)

    def make_order(self, lines, status=OrderStatus.SERVED, payment_status=OrderPaymentStatus.UNPAID):
        subtotal = sum(Decimal(price) * quantity for _, _, quantity, price in lines)
        order = Order(hotel=self.hotel, order_type=OrderType.ROOM_SERVICE, room=self.room, booking=self.booking,
                      subtotal=subtotal, tax=Decimal('0'), total=subtotal, status=status,
                      payment_status=payment_status)
        save_with_unique_number(order, 'order_number', 'ORD', 5)
        for name, variant, quantity, price in lines:
            OrderItem.objects.create(order=order, name=name, variant=variant, quantity=quantity,
                                     price=Decimal(price), subtotal=Decimal(price) * quantity)
        return order


class InvoiceServiceTests(BillingFixtureMixin, TestCase):
    def setUp(self):
        self.make_stay()

    def test_invoice_combines_room_and_room_service(self):
        served = self.make_order([('Masala Chai', '', 2, '40'), ('Masala Chai', 'Large', 1, '60')])
        # settled at the counter, and still in the kitchen
        self.make_order([('Sandwich', '', 1, '120')], payment_status=OrderPaymentStatus.PAID)
        self.make_order([('Pakora', '', 1, '90')], status=OrderStatus.PREPARING)

        invoice = services.generate_invoice(self.cashier, {'booking': self.booking.pk})

        self.assertTrue(invoice.invoice_number.startswith('INV'))
        self.assertEqual(len(invoice.invoice_number), 11)
        room, chai, large = invoice.lines.all()
        self.assertEqual((room.line_type, room.quantity, room.unit, room.rate, room.amount),
                         (LineType.ROOM, Decimal('2'), 'night', Decimal('2000'), Decimal('4000')))
        self.assertEqual(chai.order, served)
        self.assertEqual(large.description, f'Masala Chai (Large) - {served.order_number}')

        self.assertEqual(invoice.room_charges, Decimal('4000'))
        self.assertEqual(invoice.food_charges, Decimal('140'))
        self.assertEqual(invoice.subtotal, Decimal('4140'))
        self.assertEqual(invoice.tax, Decimal('207'))
        self.assertEqual(invoice.total, Decimal('4347'))
        self.assertEqual(invoice.due_at - invoice.generated_at, timedelta(hours=24))

    def test_advance_is_carried_over(self):
        invoice = services.generate_invoice(self.cashier, {'booking': self.booking.pk})

        self.assertEqual(invoice.paid_amount, Decimal('500'))
        self.assertEqual(invoice.balance_due, Decimal('3700'))
        self.assertEqual(invoice.payment_status, 'partially_paid')
        advance = invoice.payments.get()
        self.assertEqual(advance.method, PaymentMethod.CASH)
        self.assertIn(self.booking.booking_number, advance.reference)

    def test_one_invoice_per_booking(self):
        services.generate_invoice(self.cashier, {'booking': self.booking.pk})
        with self.assertRaisesMessage(Conflict, 'Invoice already generated for this booking'):
            services.generate_invoice(self.manager, {'booking': self.booking.pk})
        self.assertEqual(Invoice.objects.count(), 1)

    def test_extra_charges_and_discount(self):
        suite = Room.objects.create(hotel=self.hotel, room_number='102', base_price=Decimal('2000'),
                                    extra_adult_charge=Decimal('500'))
        booking = self.book(suite, adults=3)

        invoice = services.generate_invoice(self.cashier, {
            'booking': booking.pk, 'discount_amount': Decimal('1000'), 'discount_reason': 'Corporate rate',
        })

        self.assertEqual(invoice.service_charges, Decimal('1000'))
        self.assertEqual(invoice.lines.get(line_type=LineType.SERVICE).amount, Decimal('1000'))
        self.assertEqual(invoice.subtotal, Decimal('5000'))
        self.assertEqual(invoice.taxable_amount, Decimal('4000'))
        self.assertEqual(invoice.total, Decimal('4200'))
        self.assertEqual(invoice.payment_status, 'pending')
        self.assertFalse(invoice.payments.exists())

    def test_discount_limits(self):
        with self.assertRaisesMessage(BadRequest, 'Discount cannot exceed the subtotal'):
            services.generate_invoice(self.cashier, {'booking': self.booking.pk, 'discount_amount': 5000})
        # 400 + 20 tax leaves less than the 500 advance
        with self.assertRaises(BadRequest):
            services.generate_invoice(self.cashier, {'booking': self.booking.pk, 'discount_amount': 3600})
        self.assertFalse(Invoice.objects.exists())

    def test_cancelled_booking_is_not_invoiced(self):
        room_services.cancel_booking(self.manager, self.booking.pk)
        with self.assertRaises(BadRequest):
            services.generate_invoice(self.cashier, {'booking': self.booking.pk})

    def test_other_hotel_is_denied(self):
        outsider = make_staff(make_hotel(code='OTH', name='Other Inn'), role=Staff.Role.CASHIER)
        with self.assertRaises(Forbidden):
            services.generate_invoice(outsider, {'booking': self.booking.pk})

        invoice = services.generate_invoice(self.cashier, {'booking': self.booking.pk})
        with self.assertRaisesMessage(Forbidden, 'Access denied to this invoice'):
            services.get_invoice(outsider, invoice.pk)

    def test_payments_settle_the_invoice(self):
        invoice = services.generate_invoice(self.cashier, {'booking': self.booking.pk})

        with self.assertRaisesMessage(BadRequest, 'Payment amount exceeds balance. Balance: 3700'):
            services.add_payment(self.cashier, invoice.pk, Decimal('3701'), PaymentMethod.UPI)

        invoice = services.add_payment(self.cashier, invoice.pk, Decimal('1700'), PaymentMethod.CARD)
        self.assertEqual(invoice.payment_status, 'partially_paid')
        self.assertEqual(invoice.status, InvoiceStatus.GENERATED)

        invoice = services.add_payment(self.cashier, invoice.pk, Decimal('2000'), PaymentMethod.UPI, 'UPI-1')
        self.assertEqual(invoice.payment_status, 'paid')
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertIsNotNone(invoice.paid_at)
        self.assertEqual([p.amount for p in invoice.payments.all()],
                         [Decimal('500'), Decimal('1700'), Decimal('2000')])

        with self.assertRaisesMessage(BadRequest, 'Invoice is already fully paid'):
            services.add_payment(self.cashier, invoice.pk, Decimal('1'), PaymentMethod.CASH)

    def test_pending_invoices(self):
        suite = Room.objects.create(hotel=self.hotel, room_number='102', base_price=Decimal('1000'))
        settled = self.book(suite, check_out=future(1))
        services.generate_invoice(self.cashier, {'booking': self.booking.pk})
        paid = services.generate_invoice(self.cashier, {'booking': settled.pk})
        services.add_payment(self.cashier, paid.pk, paid.total, PaymentMethod.CASH)

        invoices, total_pending = services.pending_invoices(self.manager)

        self.assertEqual([invoice.booking_id for invoice in invoices], [self.booking.pk])
        self.assertEqual(total_pending, Decimal('3700'))

    def test_events_are_published_on_commit(self):
        with mock.patch.object(EventSink, 'publish', return_value=True) as publish:
            with self.captureOnCommitCallbacks(execute=True):
                invoice = services.generate_invoice(self.cashier, {'booking': self.booking.pk})
            with self.captureOnCommitCallbacks(execute=True):
                services.add_payment(self.cashier, invoice.pk, Decimal('100'), PaymentMethod.CASH)

        events = [call.args[0] for call in publish.call_args_list]
        self.assertEqual(events, [INVOICE_GENERATED, INVOICE_PAYMENT])
        self.assertEqual(publish.call_args_list[0].args[1]['invoice_number'], invoice.invoice_number)


class InvoiceAPITests(BillingFixtureMixin, APITestCase):
    def setUp(self):
        self.make_stay()
        authenticate(self.client, self.cashier)

    def generate(self, **payload):
        payload.setdefault('booking', self.booking.pk)
        return self.client.post(reverse('invoice_list'), payload, format='json')

    def test_generate_and_fetch(self):
        self.make_order([('Masala Chai', '', 2, '40')])

        response = self.generate(notes='Checkout bill')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['booking_number'], self.booking.booking_number)
        self.assertEqual([line['line_type'] for line in data['lines']], ['room', 'food'])
        self.assertEqual(data['total'], '4284.00')
        self.assertEqual(len(data['payments']), 1)

        detail = self.client.get(reverse('invoice_detail', kwargs={'invoice_id': data['id']}))
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(detail.data['data']['invoice_number'], data['invoice_number'])
        self.assertEqual(detail.data['data']['notes'], 'Checkout bill')

    def test_second_invoice_is_a_conflict(self):
        self.generate()
        response = self.generate()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['message'], 'Invoice already generated for this booking')

    def test_kitchen_staff_cannot_generate(self):
        authenticate(self.client, make_staff(self.hotel, role=Staff.Role.KITCHEN_STAFF))
        response = self.generate()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters(self):
        invoice_number = self.generate().data['data']['invoice_number']

        response = self.client.get(reverse('invoice_list'), {'search': 'asha'})
        self.assertEqual([row['invoice_number'] for row in response.data['data']], [invoice_number])
        self.assertEqual(response.data['pagination']['totalItems'], 1)

        response = self.client.get(reverse('invoice_list'), {'payment_status': 'paid'})
        self.assertEqual(response.data['data'], [])

        response = self.client.get(reverse('invoice_list'), {'booking': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_endpoint(self):
        invoice_id = self.generate().data['data']['id']
        url = reverse('invoice_payment', kwargs={'invoice_id': invoice_id})

        response = self.client.post(url, {'amount': '100.00', 'method': 'cheque'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'amount': '3700.00', 'method': 'upi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['invoice']['payment_status'], 'paid')
        self.assertEqual(response.data['data']['remaining_balance'], Decimal('0'))

    def test_pending_endpoint(self):
        self.generate()
        response = self.client.get(reverse('invoice_pending'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['count'], 1)
        self.assertEqual(response.data['data']['total_pending'], Decimal('3700'))
