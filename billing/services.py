"""
Guest invoices: one per booking, combining the room charges with the
room-service orders billed to the stay.

Only served orders that are still unpaid are added as food lines. Orders
settled at the counter already carry their own payment and are not charged
twice.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from hospitality.exceptions import BadRequest, Conflict, NotFound
from hospitality.money import ZERO, ceil_amount, get_gst_rate, price_breakdown, to_decimal
from hospitality.numbering import save_with_unique_number
from hotels.access import ensure_hotel_access, scope_queryset
from notifications import sink
from pos.models import Order, OrderPaymentStatus, OrderStatus
from rooms.availability import stay_duration_days
from rooms.models import Booking, BookingStatus, BookingType, PaymentStatus
from rooms.services import derive_payment_status, get_booking

from .models import Invoice, InvoiceLine, InvoicePayment, InvoiceStatus, LineType, PaymentMethod

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = 'INV'
INVOICE_NUMBER_DIGITS = 4

CENT = Decimal('0.01')


def _serialize(invoice):
    from .serializers import InvoiceSerializer
    return InvoiceSerializer(invoice).data


def room_line(booking):
    if booking.booking_type == BookingType.HOURLY:
        quantity, unit = booking.hours, 'hour'
    else:
        quantity, unit = stay_duration_days(booking.check_in, booking.check_out), 'night'
    return InvoiceLine(
        line_type=LineType.ROOM,
        description=f"Room {booking.room.room_number} ({booking.room.get_room_type_display()}) "
                    f"- {quantity} {unit}(s)",
        quantity=quantity,
        unit=unit,
        rate=(booking.room_charges / quantity).quantize(CENT),
        amount=booking.room_charges,
    )


def food_lines(orders):
    lines = []
    for order in orders:
        for item in order.items.all():
            name = f"{item.name} ({item.variant})" if item.variant else item.name
            lines.append(InvoiceLine(
                line_type=LineType.FOOD,
                description=f"{name} - {order.order_number}",
                order=order,
                quantity=item.quantity,
                unit='item',
                rate=item.price,
                amount=item.subtotal,
            ))
    return lines


def billable_orders(booking):
    return (Order.objects
            .filter(booking=booking, status=OrderStatus.SERVED, payment_status=OrderPaymentStatus.UNPAID)
            .prefetch_related('items')
            .order_by('placed_at', 'id'))


def generate_invoice(actor, data):
    """
    Bill a booking. `data` is the validated payload of GenerateInvoiceSerializer.

    The booking row is locked so two requests for the same stay cannot both
    pass the one-invoice check.
    """
    with transaction.atomic():
        booking = get_booking(actor, data['booking'])
        booking = Booking.objects.select_for_update().select_related('room').get(pk=booking.pk)

        if booking.status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
            raise BadRequest('Cannot invoice a cancelled or no-show booking')
        if Invoice.objects.filter(booking=booking).exists():
            raise Conflict('Invoice already generated for this booking')

        lines = [room_line(booking)]
        if booking.extra_charges > 0:
            lines.append(InvoiceLine(
                line_type=LineType.SERVICE, description='Extra guest charges',
                quantity=1, rate=booking.extra_charges, amount=booking.extra_charges,
            ))
        lines.extend(food_lines(billable_orders(booking)))

        charges = {line_type: ZERO for line_type in LineType.values}
        for line in lines:
            charges[line.line_type] += to_decimal(line.amount)
        subtotal = sum(charges.values(), ZERO)

        discount = to_decimal(data.get('discount_amount') or 0)
        if discount > subtotal:
            raise BadRequest('Discount cannot exceed the subtotal')

        gst_rate = get_gst_rate()
        breakdown = price_breakdown(subtotal - discount, gst_rate)
        paid = booking.advance_payment
        if paid > breakdown['total']:
            raise BadRequest('Invoice total would fall below the advance already paid')

        now = timezone.now()
        payment_status = derive_payment_status(paid, breakdown['total'])
        invoice = Invoice(
            hotel_id=booking.hotel_id,
            booking=booking,
            guest_name=booking.guest_name,
            guest_phone=booking.guest_phone,
            guest_email=booking.guest_email,
            room_charges=charges[LineType.ROOM],
            food_charges=charges[LineType.FOOD],
            service_charges=charges[LineType.SERVICE],
            subtotal=subtotal,
            discount=discount,
            discount_reason=data.get('discount_reason', ''),
            taxable_amount=breakdown['subtotal'],
            tax_rate=gst_rate,
            tax=breakdown['tax'],
            total=breakdown['total'],
            status=InvoiceStatus.PAID if payment_status == PaymentStatus.PAID else InvoiceStatus.GENERATED,
            payment_status=payment_status,
            paid_amount=paid,
            generated_at=now,
            due_at=now + timedelta(hours=getattr(settings, 'INVOICE_DUE_HOURS', 24)),
            paid_at=now if payment_status == PaymentStatus.PAID else None,
            notes=data.get('notes', ''),
            created_by=actor,
        )
        save_with_unique_number(invoice, 'invoice_number', INVOICE_NUMBER_PREFIX, INVOICE_NUMBER_DIGITS)

        for line in lines:
            line.invoice = invoice
        InvoiceLine.objects.bulk_create(lines)

        if paid > 0:
            # The booking does not record how the advance was taken
            InvoicePayment.objects.create(
                invoice=invoice, amount=paid, method=PaymentMethod.CASH,
                reference=f'Advance payment for booking {booking.booking_number}',
                paid_at=booking.created_at, received_by=booking.created_by,
            )

        logger.info("Invoice %s generated for booking %s (%d lines, total %s)",
                    invoice.invoice_number, booking.booking_number, len(lines), invoice.total)
        sink.emit(sink.INVOICE_GENERATED, _serialize(invoice))

    return invoice


def get_invoice(actor, invoice_id):
    try:
        invoice = (Invoice.objects
                   .select_related('hotel', 'booking__room')
                   .prefetch_related('lines', 'payments')
                   .get(pk=invoice_id))
    except Invoice.DoesNotExist:
        raise NotFound('Invoice not found')
    ensure_hotel_access(actor, invoice.hotel_id, 'Access denied to this invoice')
    return invoice


def add_payment(actor, invoice_id, amount, method, reference=''):
    amount = to_decimal(amount)
    if amount <= 0:
        raise BadRequest('Payment amount must be a positive number')

    with transaction.atomic():
        invoice = get_invoice(actor, invoice_id)
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)

        if invoice.is_fully_paid():
            raise BadRequest('Invoice is already fully paid')
        if amount > invoice.balance_due:
            raise BadRequest(f'Payment amount exceeds balance. Balance: {invoice.balance_due}')

        InvoicePayment.objects.create(invoice=invoice, amount=amount, method=method,
                                      reference=reference, received_by=actor)
        invoice.paid_amount += amount
        invoice.payment_status = derive_payment_status(invoice.paid_amount, invoice.total)
        if invoice.payment_status == PaymentStatus.PAID:
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = timezone.now()
        invoice.save(update_fields=['paid_amount', 'payment_status', 'status', 'paid_at', 'updated_at'])

        logger.info("Invoice %s payment %s by %s (%s)", invoice.invoice_number, amount, method,
                    invoice.payment_status)
        sink.emit(sink.INVOICE_PAYMENT, _serialize(invoice))

    return get_invoice(actor, invoice.pk)


def pending_invoices(actor, hotel_id=None):
    """Unsettled invoices, soonest due first, with the outstanding total"""
    invoices = scope_queryset(
        actor,
        Invoice.objects.filter(payment_status__in=[PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID]),
        hotel_id,
    )
    invoices = list(invoices.select_related('booking').order_by('due_at', 'id'))
    total_pending = ceil_amount(sum((invoice.balance_due for invoice in invoices), ZERO))
    return invoices, total_pending
