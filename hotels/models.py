from django.db import models


class Hotel(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20, unique=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    # Percentage applied to public orders; falls back to GST_RATE when unset
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.code})"


class Staff(models.Model):
    class Role(models.TextChoices):
        SUPER_ADMIN = 'super_admin', 'Super Admin'
        HOTEL_ADMIN = 'hotel_admin', 'Hotel Admin'
        MANAGER = 'manager', 'Manager'
        CASHIER = 'cashier', 'Cashier'
        KITCHEN_STAFF = 'kitchen_staff', 'Kitchen Staff'

    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CASHIER)
    hotel = models.ForeignKey(Hotel, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = 'staff'

    # DRF treats request.user as an authenticated principal
    is_authenticated = True
    is_anonymous = False

    @property
    def has_global_scope(self):
        return self.role == self.Role.SUPER_ADMIN

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"
