"""
Money rounding rules shared by bookings and orders.

Tax is always rounded up to a whole currency unit, and so is the grand total:

    tax   = ceil(subtotal * rate / 100)
    total = ceil(subtotal + tax)
"""

from decimal import Decimal, ROUND_CEILING

from django.conf import settings

ZERO = Decimal('0')


def to_decimal(value):
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    # str() keeps floats like 0.1 from dragging binary noise into the result
    return Decimal(str(value))


def ceil_amount(value):
    """Round up to a whole currency unit"""
    return to_decimal(value).to_integral_value(rounding=ROUND_CEILING)


def compute_tax(subtotal, rate):
    return ceil_amount(to_decimal(subtotal) * to_decimal(rate) / 100)


def price_breakdown(subtotal, rate):
    subtotal = to_decimal(subtotal)
    tax = compute_tax(subtotal, rate)
    return {
        'subtotal': subtotal,
        'tax': tax,
        'total': ceil_amount(subtotal + tax),
    }


def get_gst_rate():
    """The process-wide GST percentage from settings"""
    return to_decimal(getattr(settings, 'GST_RATE', 5))
