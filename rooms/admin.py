from django.contrib import admin
from .models import Room, Booking


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['id', 'hotel', 'room_number', 'room_type', 'base_price', 'status', 'is_active']
    list_filter = ['hotel', 'status', 'room_type']
    search_fields = ['room_number']
    readonly_fields = ['current_booking']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['booking_number', 'hotel', 'room', 'guest_name', 'check_in', 'check_out',
                    'status', 'payment_status', 'total']
    list_filter = ['status', 'payment_status', 'booking_type']
    search_fields = ['booking_number', 'guest_name', 'guest_phone']
    readonly_fields = ['booking_number', 'room_charges', 'extra_charges', 'subtotal', 'tax', 'total']
