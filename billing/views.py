from django.db.models import Q
from rest_framework import status
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from hospitality.params import get_id_param
from hospitality.permissions import HasRole, FRONT_DESK_ROLES
from hospitality.responses import paginated_response, success_response
from hotels.access import scope_queryset

from . import services
from .models import Invoice
from .serializers import (
    AddPaymentSerializer, GenerateInvoiceSerializer, InvoiceSerializer, InvoiceSummarySerializer,
)

HOTEL_PARAMETER = OpenApiParameter(
    name='hotel', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY,
    description='Hotel ID (super admin only; other staff always see their own hotel)'
)
INVOICE_ID_PARAMETER = OpenApiParameter(
    name='invoice_id', type=OpenApiTypes.INT, location=OpenApiParameter.PATH, description='Invoice ID'
)


class InvoiceListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': FRONT_DESK_ROLES}

    @extend_schema(
        summary="List invoices",
        parameters=[
            HOTEL_PARAMETER,
            OpenApiParameter(name='status', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='payment_status', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='booking', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='search', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             description='Matches invoice number, guest name or guest phone'),
        ],
        responses={200: InvoiceSummarySerializer(many=True)},
    )
    def get(self, request):
        invoices = scope_queryset(request.user, Invoice.objects.all(), request.query_params.get('hotel'))
        for field in ('status', 'payment_status'):
            value = request.query_params.get(field)
            if value:
                invoices = invoices.filter(**{field: value})
        booking_id = get_id_param(request, 'booking')
        if booking_id:
            invoices = invoices.filter(booking_id=booking_id)
        search = (request.query_params.get('search') or '').strip()
        if search:
            invoices = invoices.filter(
                Q(invoice_number__icontains=search) | Q(guest_name__icontains=search)
                | Q(guest_phone__icontains=search)
            )
        invoices = invoices.select_related('booking')
        return paginated_response(request, invoices, InvoiceSummarySerializer, 'Invoices fetched successfully')

    @extend_schema(
        summary="Generate the invoice for a booking",
        description="Bills the room charges plus every served, unpaid order linked to the booking. "
                    "A booking has at most one invoice; a second request fails with 409.",
        request=GenerateInvoiceSerializer,
        responses={201: InvoiceSerializer},
        examples=[
            OpenApiExample(
                'Generate Invoice Example',
                summary='Checkout bill with a goodwill discount',
                value={'booking': 1, 'discount_amount': '100.00', 'discount_reason': 'Late room service'}
            )
        ]
    )
    def post(self, request):
        serializer = GenerateInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = services.generate_invoice(request.user, serializer.validated_data)
        invoice = services.get_invoice(request.user, invoice.pk)
        return success_response('Invoice generated successfully', InvoiceSerializer(invoice).data,
                                status.HTTP_201_CREATED)


class InvoiceDetailView(APIView):
    @extend_schema(summary="Get invoice details", parameters=[INVOICE_ID_PARAMETER],
                   responses={200: InvoiceSerializer})
    def get(self, request, invoice_id):
        invoice = services.get_invoice(request.user, invoice_id)
        return success_response('Invoice details fetched successfully', InvoiceSerializer(invoice).data)


class InvoicePaymentView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(
        summary="Add a payment to an invoice",
        parameters=[INVOICE_ID_PARAMETER],
        request=AddPaymentSerializer,
        responses={200: InvoiceSerializer},
        examples=[OpenApiExample('Payment Example', value={'amount': '1500.00', 'method': 'upi',
                                                           'reference': 'UPI-882731'})],
    )
    def post(self, request, invoice_id):
        serializer = AddPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        invoice = services.add_payment(request.user, invoice_id, data['amount'], data['method'], data['reference'])
        return success_response('Payment added successfully', {
            'invoice': InvoiceSerializer(invoice).data,
            'remaining_balance': invoice.balance_due,
        })


class PendingInvoicesView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(summary="Invoices awaiting payment", parameters=[HOTEL_PARAMETER],
                   responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        invoices, total_pending = services.pending_invoices(request.user, request.query_params.get('hotel'))
        return success_response('Pending payments fetched successfully', {
            'invoices': InvoiceSummarySerializer(invoices, many=True).data,
            'count': len(invoices),
            'total_pending': total_pending,
        })
