from django.db import models

from hotels.models import Hotel, Staff


class TableStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    OCCUPIED = 'occupied', 'Occupied'
    RESERVED = 'reserved', 'Reserved'


class OrderType(models.TextChoices):
    DINE_IN = 'dine-in', 'Dine-in'
    ROOM_SERVICE = 'room-service', 'Room service'
    TAKEAWAY = 'takeaway', 'Takeaway'
    DELIVERY = 'delivery', 'Delivery'


class OrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    SERVED = 'served', 'Served'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class PaymentMode(models.TextChoices):
    CASH = 'CASH', 'Cash'
    UPI = 'UPI', 'UPI'
    CARD = 'CARD', 'Card'


class OrderPaymentStatus(models.TextChoices):
    PAID = 'PAID', 'Paid'
    UNPAID = 'UNPAID', 'Unpaid'


class Table(models.Model):
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='tables')
    table_number = models.CharField(max_length=20)
    capacity = models.PositiveIntegerField(default=4)
    location = models.CharField(max_length=100, blank=True, default='')
    status = models.CharField(max_length=10, choices=TableStatus.choices, default=TableStatus.AVAILABLE)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['hotel', 'table_number'], name='unique_table_number_per_hotel'),
        ]

    def save(self, *args, **kwargs):
        self.table_number = (self.table_number or '').strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Table {self.table_number}"


class MenuCategory(models.Model):
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='menu_categories')
    name = models.CharField(max_length=50)
    description = models.CharField(max_length=200, blank=True, default='')
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['hotel', 'name'], name='unique_category_name_per_hotel'),
        ]
        ordering = ['display_order', 'name']
        verbose_name_plural = 'menu categories'

    def __str__(self):
        return self.name


class MenuSubCategory(models.Model):
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='menu_subcategories')
    category = models.ForeignKey(MenuCategory, on_delete=models.CASCADE, related_name='subcategories')
    name = models.CharField(max_length=50)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['display_order', 'name']
        verbose_name_plural = 'menu subcategories'

    def __str__(self):
        return f"{self.category.name} / {self.name}"


class MenuItem(models.Model):
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='menu_items')
    category = models.ForeignKey(MenuCategory, on_delete=models.PROTECT, related_name='items')
    subcategory = models.ForeignKey(MenuSubCategory, null=True, blank=True, on_delete=models.SET_NULL,
                                    related_name='items')
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default='')
    price = models.DecimalField(max_digits=10, decimal_places=2)
    is_vegetarian = models.BooleanField(default=True)
    is_available = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    preparation_time = models.PositiveIntegerField(default=15, help_text='Minutes')
    total_orders = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['hotel', 'category']),
        ]
        ordering = ['name']

    def can_order(self):
        return self.is_available and self.is_active

    def get_price(self, variant_name=None):
        """Price of the named variant, falling back to the base price"""
        if variant_name:
            variant = self.variants.filter(name=variant_name).first()
            if variant is not None:
                return variant.price
        return self.price

    def __str__(self):
        return self.name


class MenuItemVariant(models.Model):
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name='variants')
    name = models.CharField(max_length=50)
    price = models.DecimalField(max_digits=10, decimal_places=2)

    def __str__(self):
        return f"{self.menu_item.name} ({self.name})"


class RecipeIngredient(models.Model):
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name='ingredients')
    inventory_item = models.ForeignKey('inventory.InventoryItem', on_delete=models.PROTECT,
                                       related_name='used_in')
    # Consumed per unit sold
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit = models.CharField(max_length=10)

    def __str__(self):
        return f"{self.quantity} {self.unit} of {self.inventory_item.name} for {self.menu_item.name}"


class Order(models.Model):
    order_number = models.CharField(max_length=20, unique=True)
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='orders')
    order_type = models.CharField(max_length=20, choices=OrderType.choices, default=OrderType.DINE_IN)
    table_number = models.CharField(max_length=20, blank=True, default='')
    table = models.ForeignKey(Table, null=True, blank=True, on_delete=models.SET_NULL, related_name='orders')
    room = models.ForeignKey('rooms.Room', null=True, blank=True, on_delete=models.SET_NULL, related_name='orders')
    booking = models.ForeignKey('rooms.Booking', null=True, blank=True, on_delete=models.SET_NULL,
                                related_name='orders')

    customer_name = models.CharField(max_length=100, blank=True, default='')
    customer_phone = models.CharField(max_length=15, blank=True, default='')
    customer_email = models.EmailField(blank=True, default='')
    customer_address = models.CharField(max_length=300, blank=True, default='')

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING)
    payment_mode = models.CharField(max_length=10, choices=PaymentMode.choices, blank=True, default='')
    payment_status = models.CharField(max_length=10, choices=OrderPaymentStatus.choices,
                                      default=OrderPaymentStatus.UNPAID)
    paid_at = models.DateTimeField(null=True, blank=True)
    paid_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')

    special_instructions = models.CharField(max_length=500, blank=True, default='')
    cancellation_reason = models.CharField(max_length=200, blank=True, default='')

    placed_at = models.DateTimeField(auto_now_add=True)
    preparing_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    prepared_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    served_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    is_public_order = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['hotel', 'status']),
            models.Index(fields=['hotel', '-placed_at']),
        ]
        ordering = ['-placed_at', '-id']

    @property
    def is_paid(self):
        return self.payment_status == OrderPaymentStatus.PAID

    def __str__(self):
        return f"Order {self.order_number} ({self.get_status_display()})"


class OrderItem(models.Model):
    """Frozen copy of a menu line as it was when the order was placed"""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    menu_item = models.ForeignKey(MenuItem, null=True, on_delete=models.SET_NULL, related_name='+')
    name = models.CharField(max_length=100)
    variant = models.CharField(max_length=50, blank=True, default='')
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    special_instructions = models.CharField(max_length=200, blank=True, default='')

    def __str__(self):
        return f"{self.quantity} x {self.name} for Order {self.order.order_number}"
