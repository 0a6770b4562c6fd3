import re

from django.utils import timezone
from rest_framework import serializers

from .models import Booking, BookingType, Room, RoomStatus

PHONE_PATTERN = re.compile(r'^\d{10}$')

# Housekeeping states staff may set by hand; reserved and occupied belong to bookings
MANUAL_ROOM_STATUSES = (RoomStatus.AVAILABLE, RoomStatus.CLEANING, RoomStatus.MAINTENANCE)


class RoomSerializer(serializers.ModelSerializer):
    current_booking_number = serializers.CharField(
        source='current_booking.booking_number', read_only=True, default=None
    )

    class Meta:
        model = Room
        fields = ['id', 'hotel', 'room_number', 'room_type', 'floor', 'capacity_adults',
                  'capacity_children', 'base_price', 'weekend_price', 'hourly_rate',
                  'extra_adult_charge', 'extra_child_charge', 'allow_hourly_booking',
                  'status', 'current_booking', 'current_booking_number', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'hotel', 'status', 'current_booking', 'current_booking_number',
                            'created_at', 'updated_at']
        extra_kwargs = {
            'hourly_rate': {'help_text': 'Defaults to 40% of base price, rounded up'},
            'weekend_price': {'help_text': 'Informational; daily bookings are priced at base price'},
        }

    def validate_base_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Base price must be greater than zero")
        return value

    def validate(self, attrs):
        adults = attrs.get('capacity_adults', getattr(self.instance, 'capacity_adults', 2))
        if adults < 1:
            raise serializers.ValidationError({'capacity_adults': 'Room must hold at least one adult'})
        return attrs


class RoomStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[(s.value, s.label) for s in MANUAL_ROOM_STATUSES])


class BookingSerializer(serializers.ModelSerializer):
    room_number = serializers.CharField(source='room.room_number', read_only=True)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Booking
        fields = ['id', 'booking_number', 'hotel', 'room', 'room_number', 'guest_name',
                  'guest_phone', 'guest_email', 'guest_address', 'id_proof_type',
                  'id_proof_number', 'adults', 'children', 'booking_type', 'hours',
                  'check_in', 'check_out', 'actual_check_in', 'actual_check_out',
                  'room_charges', 'extra_charges', 'discount', 'subtotal', 'tax', 'total',
                  'status', 'payment_status', 'advance_payment', 'balance_due',
                  'special_requests', 'notes', 'created_by', 'checked_in_by',
                  'checked_out_by', 'created_at', 'updated_at']
        read_only_fields = fields


class CreateBookingSerializer(serializers.Serializer):
    hotel = serializers.IntegerField(required=False, help_text="Target hotel (super admin only)")
    room = serializers.IntegerField(help_text="Room ID")
    guest_name = serializers.CharField(max_length=100)
    guest_phone = serializers.CharField(help_text="10 digit phone number")
    guest_email = serializers.EmailField(required=False, allow_blank=True)
    guest_address = serializers.CharField(required=False, allow_blank=True, max_length=300)
    id_proof_type = serializers.ChoiceField(choices=Booking.ID_PROOF_CHOICES, required=False, allow_blank=True)
    id_proof_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    adults = serializers.IntegerField(default=1)
    children = serializers.IntegerField(default=0)
    booking_type = serializers.ChoiceField(choices=BookingType.choices, default=BookingType.DAILY)
    hours = serializers.IntegerField(required=False, allow_null=True,
                                     help_text="Required for hourly bookings")
    check_in = serializers.DateTimeField()
    check_out = serializers.DateTimeField(required=False, allow_null=True,
                                          help_text="Optional for hourly bookings")
    special_requests = serializers.CharField(required=False, allow_blank=True, max_length=500)
    advance_payment = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)

    def validate_guest_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Guest name must be at least 2 characters")
        return value

    def validate_guest_phone(self, value):
        if not PHONE_PATTERN.match(value):
            raise serializers.ValidationError("Phone number must be 10 digits")
        return value

    def validate_adults(self, value):
        if value < 1:
            raise serializers.ValidationError("At least one adult is required")
        return value

    def validate_children(self, value):
        if value < 0:
            raise serializers.ValidationError("Children cannot be negative")
        return value

    def validate_advance_payment(self, value):
        if value < 0:
            raise serializers.ValidationError("Advance payment cannot be negative")
        return value

    def validate_check_in(self, value):
        start_of_today = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        if value < start_of_today:
            raise serializers.ValidationError("Check-in date cannot be in the past")
        return value

    def validate(self, attrs):
        if attrs.get('booking_type') == BookingType.HOURLY:
            hours = attrs.get('hours')
            if hours is None or hours <= 0:
                raise serializers.ValidationError({'hours': 'Hours must be a positive number for hourly bookings'})
        elif attrs.get('check_out') is None:
            raise serializers.ValidationError({'check_out': 'Check-out date is required'})

        check_out = attrs.get('check_out')
        if check_out is not None and check_out <= attrs['check_in']:
            raise serializers.ValidationError({'check_out': 'Check-out date must be after check-in date'})
        return attrs


class BookingPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2,
                                      help_text="Amount received, added to the amount already paid")

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Valid payment amount is required")
        return value
