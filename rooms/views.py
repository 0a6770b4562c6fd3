from rest_framework import status
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from hospitality.params import get_id_param
from hospitality.permissions import HasRole, FRONT_DESK_ROLES, MANAGEMENT_ROLES
from hospitality.responses import paginated_response, success_response
from hotels.access import scope_queryset

from . import services
from .models import Booking, Room
from .serializers import (
    BookingPaymentSerializer, BookingSerializer, CreateBookingSerializer,
    RoomSerializer, RoomStatusSerializer,
)

HOTEL_PARAMETER = OpenApiParameter(
    name='hotel', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY,
    description='Hotel ID (super admin only; other staff always see their own hotel)'
)
BOOKING_ID_PARAMETER = OpenApiParameter(
    name='booking_id', type=OpenApiTypes.INT, location=OpenApiParameter.PATH, description='Booking ID'
)


class RoomListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': MANAGEMENT_ROLES}

    @extend_schema(
        summary="List rooms",
        parameters=[
            HOTEL_PARAMETER,
            OpenApiParameter(name='status', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='room_type', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
        ],
        responses={200: RoomSerializer(many=True)},
    )
    def get(self, request):
        rooms = scope_queryset(request.user, Room.objects.filter(is_active=True), request.query_params.get('hotel'))
        for field in ('status', 'room_type'):
            value = request.query_params.get(field)
            if value:
                rooms = rooms.filter(**{field: value})
        rooms = rooms.select_related('current_booking').order_by('floor', 'room_number')
        return paginated_response(request, rooms, RoomSerializer, 'Rooms fetched successfully')

    @extend_schema(
        summary="Create a room",
        request=RoomSerializer,
        responses={201: RoomSerializer},
        examples=[
            OpenApiExample(
                'Create Room Example',
                summary='Double room on the first floor',
                value={'room_number': '101', 'room_type': 'double', 'floor': 1,
                       'capacity_adults': 2, 'capacity_children': 1, 'base_price': '2000.00'}
            )
        ]
    )
    def post(self, request):
        serializer = RoomSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room = services.create_room(request.user, serializer.validated_data, request.data.get('hotel'))
        return success_response('Room created successfully', RoomSerializer(room).data, status.HTTP_201_CREATED)


class RoomStatusView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(
        summary="Set housekeeping status",
        description="Only available, cleaning and maintenance can be set by hand, "
                    "and never while the room is reserved or occupied.",
        request=RoomStatusSerializer,
        responses={200: RoomSerializer},
    )
    def patch(self, request, room_id):
        serializer = RoomStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room = services.update_room_status(request.user, room_id, serializer.validated_data['status'])
        return success_response('Room status updated', RoomSerializer(room).data)


class BookingListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': FRONT_DESK_ROLES}

    @extend_schema(
        summary="List bookings",
        parameters=[
            HOTEL_PARAMETER,
            OpenApiParameter(name='status', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='room', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY),
        ],
        responses={200: BookingSerializer(many=True)},
    )
    def get(self, request):
        bookings = scope_queryset(request.user, Booking.objects.all(), request.query_params.get('hotel'))
        if request.query_params.get('status'):
            bookings = bookings.filter(status=request.query_params['status'])
        room_id = get_id_param(request, 'room')
        if room_id:
            bookings = bookings.filter(room_id=room_id)
        bookings = bookings.select_related('room')
        return paginated_response(request, bookings, BookingSerializer, 'Bookings fetched successfully')

    @extend_schema(
        summary="Create a booking",
        description="Books a room for a daily or hourly stay. Fails with 409 when the "
                    "interval overlaps a confirmed, reserved or checked-in booking.",
        request=CreateBookingSerializer,
        responses={201: BookingSerializer},
        examples=[
            OpenApiExample(
                'Daily Booking Example',
                summary='Two nights for two adults',
                value={'room': 1, 'guest_name': 'Asha Rao', 'guest_phone': '9876543210',
                       'adults': 2, 'booking_type': 'daily',
                       'check_in': '2030-01-10T12:00:00Z', 'check_out': '2030-01-12T11:00:00Z'}
            ),
            OpenApiExample(
                'Hourly Booking Example',
                summary='Three hour stay',
                value={'room': 1, 'guest_name': 'Asha Rao', 'guest_phone': '9876543210',
                       'booking_type': 'hourly', 'hours': 3, 'check_in': '2030-01-10T12:00:00Z'}
            ),
        ]
    )
    def post(self, request):
        serializer = CreateBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.create_booking(request.user, serializer.validated_data)
        return success_response('Booking created successfully', BookingSerializer(booking).data,
                                status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    @extend_schema(summary="Get booking details", parameters=[BOOKING_ID_PARAMETER],
                   responses={200: BookingSerializer})
    def get(self, request, booking_id):
        booking = services.get_booking(request.user, booking_id)
        return success_response('Booking fetched successfully', BookingSerializer(booking).data)


class BookingActionView(APIView):
    """Shared plumbing for the POST-only booking transitions"""

    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES
    success_message = ''

    def run(self, actor, booking_id):
        raise NotImplementedError

    def post(self, request, booking_id):
        booking = self.run(request.user, booking_id)
        return success_response(self.success_message, BookingSerializer(booking).data)


class BookingCheckInView(BookingActionView):
    success_message = 'Guest checked in successfully'

    def run(self, actor, booking_id):
        return services.check_in_guest(actor, booking_id)

    @extend_schema(summary="Check in", parameters=[BOOKING_ID_PARAMETER], request=None,
                   responses={200: BookingSerializer})
    def post(self, request, booking_id):
        return super().post(request, booking_id)


class BookingCheckOutView(BookingActionView):
    success_message = 'Guest checked out successfully'

    def run(self, actor, booking_id):
        return services.check_out_guest(actor, booking_id)

    @extend_schema(summary="Check out", description="Requires the booking to be fully paid.",
                   parameters=[BOOKING_ID_PARAMETER], request=None, responses={200: BookingSerializer})
    def post(self, request, booking_id):
        return super().post(request, booking_id)


class BookingCancelView(BookingActionView):
    success_message = 'Booking cancelled successfully'

    def run(self, actor, booking_id):
        return services.cancel_booking(actor, booking_id)

    @extend_schema(summary="Cancel booking", parameters=[BOOKING_ID_PARAMETER], request=None,
                   responses={200: BookingSerializer})
    def post(self, request, booking_id):
        return super().post(request, booking_id)


class BookingNoShowView(BookingActionView):
    success_message = 'Booking marked as no-show'

    def run(self, actor, booking_id):
        return services.mark_no_show(actor, booking_id)

    @extend_schema(summary="Mark no-show", description="Only once the check-in time has passed.",
                   parameters=[BOOKING_ID_PARAMETER], request=None, responses={200: BookingSerializer})
    def post(self, request, booking_id):
        return super().post(request, booking_id)


class BookingPaymentView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(
        summary="Record a payment",
        parameters=[BOOKING_ID_PARAMETER],
        request=BookingPaymentSerializer,
        responses={200: BookingSerializer},
        examples=[OpenApiExample('Payment Example', value={'amount': '2100.00'})],
    )
    def patch(self, request, booking_id):
        serializer = BookingPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.record_payment(request.user, booking_id, serializer.validated_data['amount'])
        return success_response('Payment recorded successfully', BookingSerializer(booking).data)
