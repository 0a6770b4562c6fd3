from django.contrib import admin
from .models import Invoice, InvoiceLine, InvoicePayment


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0


class InvoicePaymentInline(admin.TabularInline):
    model = InvoicePayment
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'hotel', 'booking', 'guest_name', 'total', 'paid_amount',
                    'status', 'payment_status', 'due_at']
    list_filter = ['hotel', 'status', 'payment_status']
    search_fields = ['invoice_number', 'guest_name', 'guest_phone']
    readonly_fields = ['invoice_number', 'subtotal', 'taxable_amount', 'tax', 'total']
    inlines = [InvoiceLineInline, InvoicePaymentInline]
