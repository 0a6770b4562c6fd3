from rest_framework import serializers

from .models import Invoice, InvoiceLine, InvoicePayment, PaymentMethod


class InvoiceLineSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = InvoiceLine
        fields = ['id', 'line_type', 'description', 'order', 'order_number', 'quantity', 'unit', 'rate', 'amount']
        read_only_fields = fields


class InvoicePaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoicePayment
        fields = ['id', 'amount', 'method', 'reference', 'paid_at', 'received_by']
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    booking_number = serializers.CharField(source='booking.booking_number', read_only=True)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    lines = InvoiceLineSerializer(many=True, read_only=True)
    payments = InvoicePaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'hotel', 'booking', 'booking_number', 'guest_name',
                  'guest_phone', 'guest_email', 'lines', 'room_charges', 'food_charges',
                  'service_charges', 'subtotal', 'discount', 'discount_reason', 'taxable_amount',
                  'tax_rate', 'tax', 'total', 'status', 'payment_status', 'paid_amount',
                  'balance_due', 'payments', 'generated_at', 'due_at', 'paid_at', 'notes',
                  'created_by', 'created_at', 'updated_at']
        read_only_fields = fields


class InvoiceSummarySerializer(serializers.ModelSerializer):
    """List rows without the line and payment detail"""

    booking_number = serializers.CharField(source='booking.booking_number', read_only=True)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'hotel', 'booking', 'booking_number', 'guest_name',
                  'guest_phone', 'total', 'status', 'payment_status', 'paid_amount', 'balance_due',
                  'generated_at', 'due_at']
        read_only_fields = fields


class GenerateInvoiceSerializer(serializers.Serializer):
    booking = serializers.IntegerField(help_text="Booking ID")
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    discount_reason = serializers.CharField(required=False, allow_blank=True, max_length=200)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate_discount_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Discount cannot be negative")
        return value


class AddPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=200, default='')

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Payment amount must be a positive number")
        return value
