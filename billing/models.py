from django.db import models
from django.utils import timezone

from hotels.models import Hotel, Staff
from rooms.models import Booking, PaymentStatus


class InvoiceStatus(models.TextChoices):
    GENERATED = 'generated', 'Generated'
    PAID = 'paid', 'Paid'


class LineType(models.TextChoices):
    ROOM = 'room', 'Room'
    FOOD = 'food', 'Food'
    SERVICE = 'service', 'Service'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'
    UPI = 'upi', 'UPI'
    WALLET = 'wallet', 'Wallet'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'


class Invoice(models.Model):
    invoice_number = models.CharField(max_length=20, unique=True)
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='invoices')
    # One bill per stay
    booking = models.OneToOneField(Booking, on_delete=models.PROTECT, related_name='invoice')

    guest_name = models.CharField(max_length=100)
    guest_phone = models.CharField(max_length=10)
    guest_email = models.EmailField(blank=True, default='')

    room_charges = models.DecimalField(max_digits=12, decimal_places=2)
    food_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    service_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount_reason = models.CharField(max_length=200, blank=True, default='')
    taxable_amount = models.DecimalField(max_digits=12, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=InvoiceStatus.choices, default=InvoiceStatus.GENERATED)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    generated_at = models.DateTimeField(default=timezone.now)
    due_at = models.DateTimeField()
    paid_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True, default='')

    created_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(discount__lte=models.F('subtotal')),
                                   name='invoice_discount_within_subtotal'),
        ]
        indexes = [
            models.Index(fields=['hotel', 'payment_status']),
            models.Index(fields=['hotel', '-created_at']),
        ]
        ordering = ['-created_at', '-id']

    @property
    def balance_due(self):
        return self.total - self.paid_amount

    def is_fully_paid(self):
        return self.paid_amount >= self.total

    def __str__(self):
        return f"Invoice {self.invoice_number} ({self.get_payment_status_display()})"


class InvoiceLine(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='lines')
    line_type = models.CharField(max_length=10, choices=LineType.choices)
    description = models.CharField(max_length=200)
    order = models.ForeignKey('pos.Order', null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    unit = models.CharField(max_length=10, default='unit')
    rate = models.DecimalField(max_digits=12, decimal_places=2)
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.description} on {self.invoice.invoice_number}"


class InvoicePayment(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    reference = models.CharField(max_length=200, blank=True, default='')
    paid_at = models.DateTimeField(default=timezone.now)
    received_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')

    class Meta:
        ordering = ['paid_at', 'id']

    def __str__(self):
        return f"{self.amount} {self.get_method_display()} on {self.invoice.invoice_number}"
