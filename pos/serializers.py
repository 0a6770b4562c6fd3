import re

from rest_framework import serializers

from inventory.models import InventoryItem
from .models import (
    MenuCategory, MenuItem, MenuItemVariant, MenuSubCategory, Order, OrderItem,
    OrderStatus, OrderType, PaymentMode, RecipeIngredient, Table, TableStatus,
)

PHONE_PATTERN = re.compile(r'^\d{10}$')
MIN_DELIVERY_ADDRESS_LENGTH = 10


class TableSerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ['id', 'hotel', 'table_number', 'capacity', 'location', 'status', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'hotel', 'status', 'created_at', 'updated_at']

    def validate_capacity(self, value):
        if value <= 0:
            raise serializers.ValidationError("capacity must be a positive integer")
        return value


class TableStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TableStatus.choices)


class MenuCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = MenuCategory
        fields = ['id', 'hotel', 'name', 'description', 'display_order', 'is_active']
        read_only_fields = ['id', 'hotel']


class MenuItemVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = MenuItemVariant
        fields = ['name', 'price']


class RecipeIngredientSerializer(serializers.ModelSerializer):
    inventory_item = serializers.PrimaryKeyRelatedField(queryset=InventoryItem.objects.all())
    inventory_item_name = serializers.CharField(source='inventory_item.name', read_only=True)

    class Meta:
        model = RecipeIngredient
        fields = ['inventory_item', 'inventory_item_name', 'quantity', 'unit']
        extra_kwargs = {
            'quantity': {'help_text': 'Stock consumed per unit sold'},
        }

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Ingredient quantity must be greater than zero")
        return value


class MenuItemSerializer(serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(queryset=MenuCategory.objects.all())
    subcategory = serializers.PrimaryKeyRelatedField(queryset=MenuSubCategory.objects.all(),
                                                     required=False, allow_null=True)
    variants = MenuItemVariantSerializer(many=True, required=False)
    ingredients = RecipeIngredientSerializer(many=True, required=False)

    class Meta:
        model = MenuItem
        fields = ['id', 'hotel', 'category', 'subcategory', 'name', 'description', 'price',
                  'is_vegetarian', 'is_available', 'is_active', 'preparation_time', 'total_orders',
                  'variants', 'ingredients', 'created_at', 'updated_at']
        read_only_fields = ['id', 'hotel', 'total_orders', 'created_at', 'updated_at']

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative")
        return value

    def validate_variants(self, value):
        names = [variant['name'] for variant in value]
        if len(names) != len(set(names)):
            raise serializers.ValidationError("Variant names must be unique")
        return value


class PublicMenuItemSerializer(serializers.ModelSerializer):
    """A menu item as guests see it; ids are what a public order refers to"""

    variants = MenuItemVariantSerializer(many=True, read_only=True)

    class Meta:
        model = MenuItem
        fields = ['id', 'name', 'description', 'price', 'is_vegetarian', 'preparation_time', 'variants']
        read_only_fields = fields


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'menu_item', 'name', 'variant', 'quantity', 'price', 'subtotal',
                  'special_instructions']
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    room_number = serializers.CharField(source='room.room_number', read_only=True, default=None)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'hotel', 'order_type', 'table', 'table_number', 'room',
                  'room_number', 'booking', 'customer_name', 'customer_phone', 'customer_email',
                  'customer_address', 'items', 'subtotal', 'discount', 'tax', 'total', 'status',
                  'payment_mode', 'payment_status', 'paid_at', 'paid_by', 'special_instructions',
                  'cancellation_reason', 'placed_at', 'preparing_at', 'ready_at', 'served_at',
                  'completed_at', 'cancelled_at', 'created_by', 'prepared_by', 'served_by',
                  'is_public_order']
        read_only_fields = fields


class PublicOrderSerializer(serializers.ModelSerializer):
    """What a guest may see when tracking an order"""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = ['order_number', 'order_type', 'table_number', 'items', 'subtotal', 'tax',
                  'total', 'status', 'payment_status', 'placed_at', 'served_at', 'completed_at']
        read_only_fields = fields


class CartLineSerializer(serializers.Serializer):
    menu_item = serializers.IntegerField(help_text="Menu item ID")
    quantity = serializers.IntegerField(min_value=1, default=1)
    variant = serializers.CharField(required=False, allow_blank=True, max_length=50)
    special_instructions = serializers.CharField(required=False, allow_blank=True, max_length=200)


class CreateOrderSerializer(serializers.Serializer):
    hotel = serializers.IntegerField(required=False, help_text="Target hotel (super admin only)")
    order_type = serializers.ChoiceField(choices=OrderType.choices, default=OrderType.DINE_IN)
    table_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    room = serializers.IntegerField(required=False, allow_null=True)
    booking = serializers.IntegerField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    customer_phone = serializers.CharField(required=False, allow_blank=True, max_length=15)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_address = serializers.CharField(required=False, allow_blank=True, max_length=300)
    items = CartLineSerializer(many=True, allow_empty=False)
    special_instructions = serializers.CharField(required=False, allow_blank=True, max_length=500)
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, required=False,
                                           help_text="Marks the order paid and served immediately")

    def validate(self, attrs):
        if attrs.get('order_type') == OrderType.ROOM_SERVICE and not (attrs.get('room') or attrs.get('booking')):
            raise serializers.ValidationError({'room': 'Room or booking is required for room service'})
        return attrs


class PlacePublicOrderSerializer(serializers.Serializer):
    order_type = serializers.ChoiceField(choices=OrderType.choices)
    table_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    room_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    customer_name = serializers.CharField(max_length=100)
    customer_phone = serializers.CharField(help_text="10 digit phone number")
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_address = serializers.CharField(required=False, allow_blank=True, max_length=300)
    items = CartLineSerializer(many=True, allow_empty=False)
    special_instructions = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate_customer_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Name must be at least 2 characters")
        return value

    def validate_customer_phone(self, value):
        if not PHONE_PATTERN.match(value):
            raise serializers.ValidationError("Phone number must be 10 digits")
        return value

    def validate(self, attrs):
        order_type = attrs['order_type']
        if order_type == OrderType.DINE_IN and not (attrs.get('table_number') or '').strip():
            raise serializers.ValidationError({'table_number': 'Table number is required for dine-in'})
        if order_type == OrderType.ROOM_SERVICE and not (attrs.get('room_number') or '').strip():
            raise serializers.ValidationError({'room_number': 'Room number is required for room service'})
        if order_type == OrderType.DELIVERY:
            if len((attrs.get('customer_address') or '').strip()) < MIN_DELIVERY_ADDRESS_LENGTH:
                raise serializers.ValidationError(
                    {'customer_address': 'Delivery address must be at least 10 characters'}
                )
        return attrs


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=200,
                                   help_text="Cancellation reason")


class OrderPaymentSerializer(serializers.Serializer):
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices)
