from django.db import models

from hospitality.money import ceil_amount
from hotels.models import Hotel, Staff


class RoomStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    OCCUPIED = 'occupied', 'Occupied'
    MAINTENANCE = 'maintenance', 'Maintenance'
    CLEANING = 'cleaning', 'Cleaning'
    RESERVED = 'reserved', 'Reserved'


class BookingType(models.TextChoices):
    DAILY = 'daily', 'Daily'
    HOURLY = 'hourly', 'Hourly'


class BookingStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    # Legacy pre-arrival state; treated like confirmed, never assigned on create
    RESERVED = 'reserved', 'Reserved'
    CHECKED_IN = 'checked_in', 'Checked In'
    CHECKED_OUT = 'checked_out', 'Checked Out'
    CANCELLED = 'cancelled', 'Cancelled'
    NO_SHOW = 'no_show', 'No Show'


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PARTIALLY_PAID = 'partially_paid', 'Partially Paid'
    PAID = 'paid', 'Paid'


class Room(models.Model):
    ROOM_TYPE_CHOICES = [
        ('single', 'Single'),
        ('double', 'Double'),
        ('deluxe', 'Deluxe'),
        ('suite', 'Suite'),
        ('premium', 'Premium'),
    ]

    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='rooms')
    room_number = models.CharField(max_length=20)
    room_type = models.CharField(max_length=20, choices=ROOM_TYPE_CHOICES, default='double')
    floor = models.PositiveIntegerField(default=0)
    capacity_adults = models.PositiveIntegerField(default=2)
    capacity_children = models.PositiveIntegerField(default=1)

    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    # Stored for display; the daily booking price does not consult it
    weekend_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    extra_adult_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    extra_child_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    allow_hourly_booking = models.BooleanField(default=True)

    status = models.CharField(max_length=20, choices=RoomStatus.choices, default=RoomStatus.AVAILABLE)
    # Lookup only: the booking owns the relationship
    current_booking = models.ForeignKey(
        'Booking', null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['hotel', 'room_number'], name='unique_room_number_per_hotel'),
        ]
        indexes = [
            models.Index(fields=['hotel', 'status']),
        ]

    def save(self, *args, **kwargs):
        self.room_number = (self.room_number or '').strip().upper()
        if self.hourly_rate is None and self.base_price:
            self.hourly_rate = ceil_amount(self.base_price * 40 / 100)
        super().save(*args, **kwargs)

    def is_available(self):
        return self.status == RoomStatus.AVAILABLE and self.is_active

    def supports_hourly_booking(self):
        return self.allow_hourly_booking and bool(self.hourly_rate) and self.hourly_rate > 0

    def __str__(self):
        return f"{self.get_room_type_display()} - {self.room_number}"


class Booking(models.Model):
    ID_PROOF_CHOICES = [
        ('aadhar', 'Aadhar'),
        ('passport', 'Passport'),
        ('driving_license', 'Driving License'),
        ('voter_id', 'Voter ID'),
    ]

    booking_number = models.CharField(max_length=20, unique=True)
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='bookings')
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name='bookings')

    guest_name = models.CharField(max_length=100)
    guest_phone = models.CharField(max_length=10)
    guest_email = models.EmailField(blank=True, default='')
    guest_address = models.CharField(max_length=300, blank=True, default='')
    id_proof_type = models.CharField(max_length=20, choices=ID_PROOF_CHOICES, blank=True, default='')
    id_proof_number = models.CharField(max_length=50, blank=True, default='')
    adults = models.PositiveIntegerField(default=1)
    children = models.PositiveIntegerField(default=0)

    booking_type = models.CharField(max_length=10, choices=BookingType.choices, default=BookingType.DAILY)
    hours = models.PositiveIntegerField(null=True, blank=True)
    check_in = models.DateTimeField()
    check_out = models.DateTimeField()
    actual_check_in = models.DateTimeField(null=True, blank=True)
    actual_check_out = models.DateTimeField(null=True, blank=True)

    # Pricing snapshot taken at creation
    room_charges = models.DecimalField(max_digits=12, decimal_places=2)
    extra_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    advance_payment = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    special_requests = models.CharField(max_length=500, blank=True, default='')
    notes = models.CharField(max_length=500, blank=True, default='')

    created_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    checked_in_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    checked_out_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(check_out__gt=models.F('check_in')), name='booking_check_out_after_check_in'),
        ]
        indexes = [
            models.Index(fields=['hotel', 'status']),
            models.Index(fields=['room', 'status']),
            models.Index(fields=['hotel', 'check_in']),
        ]
        ordering = ['-created_at']

    @property
    def balance_due(self):
        return self.total - self.advance_payment

    def is_active(self):
        return self.status in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)

    def __str__(self):
        return f"Booking {self.booking_number} ({self.get_status_display()})"
