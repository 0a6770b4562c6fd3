from rest_framework import serializers

from .models import InventoryItem, StockTransaction
from .services import ADD, DEDUCT


class InventoryItemSerializer(serializers.ModelSerializer):
    stock_status = serializers.CharField(read_only=True)
    needs_reorder = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = ['id', 'hotel', 'name', 'category', 'sku', 'description', 'unit',
                  'quantity_current', 'quantity_minimum', 'quantity_maximum', 'stock_status',
                  'needs_reorder', 'purchase_price', 'selling_price', 'supplier_name',
                  'reorder_point', 'last_restocked', 'last_used', 'is_active', 'notes',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'hotel', 'stock_status', 'needs_reorder', 'last_restocked',
                            'last_used', 'created_at', 'updated_at']
        extra_kwargs = {
            # duplicates are reported as a conflict by the service
            'sku': {'validators': []},
            'quantity_current': {'help_text': 'Opening stock; afterwards change it through stock adjustments'},
            'quantity_minimum': {'help_text': 'At or below this level the item is reported as low stock'},
        }

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Item name must be at least 2 characters")
        return value

    def validate(self, attrs):
        for field in ('quantity_current', 'quantity_minimum', 'quantity_maximum', 'purchase_price'):
            value = attrs.get(field)
            if value is not None and value < 0:
                raise serializers.ValidationError({field: 'Cannot be negative'})
        return attrs


class StockAdjustmentSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    type = serializers.ChoiceField(choices=[(ADD, 'Add'), (DEDUCT, 'Deduct')])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500,
                                   help_text="'wastage' books a deduction as wastage")
    cost = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True,
                                    help_text="Unit cost; defaults to the item's purchase price")

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Valid quantity is required")
        return value


class StockTransactionSerializer(serializers.ModelSerializer):
    inventory_item_name = serializers.CharField(source='inventory_item.name', read_only=True)

    class Meta:
        model = StockTransaction
        fields = ['id', 'inventory_item', 'inventory_item_name', 'transaction_type', 'quantity', 'unit',
                  'previous_stock', 'new_stock', 'unit_price', 'total_price', 'reference_type',
                  'reference_id', 'reference_number', 'reason', 'performed_by', 'created_at']
        read_only_fields = fields
