from django.contrib import admin
from .models import InventoryItem, StockTransaction


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'hotel', 'name', 'category', 'quantity_current', 'unit', 'quantity_minimum', 'is_active']
    list_filter = ['hotel', 'category', 'is_active']
    search_fields = ['name', 'sku']
    # Stock only moves through adjustments and order checkout
    readonly_fields = ['quantity_current', 'last_restocked', 'last_used']


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'inventory_item', 'transaction_type', 'quantity', 'previous_stock', 'new_stock',
                    'reference_type', 'reference_number', 'created_at']
    list_filter = ['transaction_type', 'reference_type']
    search_fields = ['inventory_item__name', 'reference_number']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
