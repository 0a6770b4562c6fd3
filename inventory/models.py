from django.db import models

from hotels.models import Hotel, Staff

LOW_STOCK_DEFAULT = 10
CRITICAL_STOCK_LEVEL = 5


class StockStatus(models.TextChoices):
    OUT_OF_STOCK = 'out-of-stock', 'Out of stock'
    CRITICAL = 'critical', 'Critical'
    LOW = 'low', 'Low'
    IN_STOCK = 'in-stock', 'In stock'
    OVERSTOCKED = 'overstocked', 'Overstocked'


class InventoryItem(models.Model):
    CATEGORY_CHOICES = [
        ('food', 'Food'),
        ('beverage', 'Beverage'),
        ('supplies', 'Supplies'),
        ('cleaning', 'Cleaning'),
        ('amenities', 'Amenities'),
    ]
    UNIT_CHOICES = [
        ('kg', 'kg'), ('g', 'g'), ('l', 'l'), ('ml', 'ml'), ('pcs', 'pcs'),
        ('box', 'box'), ('packet', 'packet'), ('bottle', 'bottle'), ('can', 'can'),
    ]

    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='inventory_items')
    name = models.CharField(max_length=100)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    sku = models.CharField(max_length=50, unique=True, null=True, blank=True)
    description = models.CharField(max_length=500, blank=True, default='')
    unit = models.CharField(max_length=10, choices=UNIT_CHOICES, default='kg')

    # Only changed through StockTransaction-producing operations
    quantity_current = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    quantity_minimum = models.DecimalField(max_digits=12, decimal_places=3, default=LOW_STOCK_DEFAULT)
    quantity_maximum = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)

    purchase_price = models.DecimalField(max_digits=10, decimal_places=2)
    selling_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    supplier_name = models.CharField(max_length=100, blank=True, default='')
    reorder_point = models.DecimalField(max_digits=12, decimal_places=3, default=LOW_STOCK_DEFAULT)
    last_restocked = models.DateTimeField(null=True, blank=True)
    last_used = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    notes = models.CharField(max_length=500, blank=True, default='')
    created_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity_current__gte=0), name='inventory_stock_not_negative'),
        ]
        indexes = [
            models.Index(fields=['hotel', 'category']),
        ]
        ordering = ['name']

    def save(self, *args, **kwargs):
        if self.sku:
            self.sku = self.sku.strip().upper()
        else:
            self.sku = None
        super().save(*args, **kwargs)

    @property
    def stock_status(self):
        current = self.quantity_current
        if current <= 0:
            return StockStatus.OUT_OF_STOCK
        if current <= CRITICAL_STOCK_LEVEL:
            return StockStatus.CRITICAL
        if current <= self.quantity_minimum:
            return StockStatus.LOW
        if self.quantity_maximum is not None and current >= self.quantity_maximum:
            return StockStatus.OVERSTOCKED
        return StockStatus.IN_STOCK

    @property
    def needs_reorder(self):
        return self.quantity_current <= self.reorder_point

    def __str__(self):
        return f"{self.name} ({self.quantity_current} {self.unit})"


class StockTransaction(models.Model):
    """Append-only stock ledger row"""

    class Type(models.TextChoices):
        PURCHASE = 'purchase', 'Purchase'
        USAGE = 'usage', 'Usage'
        WASTAGE = 'wastage', 'Wastage'
        ADJUSTMENT = 'adjustment', 'Adjustment'
        RETURN = 'return', 'Return'
        TRANSFER = 'transfer', 'Transfer'
        SALE = 'sale', 'Sale'

    class Reference(models.TextChoices):
        ORDER = 'order', 'Order'
        PURCHASE_ORDER = 'purchase-order', 'Purchase order'
        MANUAL = 'manual', 'Manual'
        SYSTEM = 'system', 'System'

    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name='stock_transactions')
    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='transactions')
    transaction_type = models.CharField(max_length=20, choices=Type.choices)
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit = models.CharField(max_length=10)
    previous_stock = models.DecimalField(max_digits=12, decimal_places=3)
    new_stock = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    reference_type = models.CharField(max_length=20, choices=Reference.choices, default=Reference.MANUAL)
    reference_id = models.CharField(max_length=50, blank=True, default='')
    reference_number = models.CharField(max_length=50, blank=True, default='')
    reason = models.CharField(max_length=500, blank=True, default='')
    performed_by = models.ForeignKey(Staff, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['inventory_item', '-created_at']),
            models.Index(fields=['hotel', 'transaction_type']),
        ]
        ordering = ['-created_at', '-id']

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Stock transactions cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock transactions cannot be deleted")

    def __str__(self):
        return f"{self.transaction_type} {self.quantity} {self.unit} of {self.inventory_item_id}"
