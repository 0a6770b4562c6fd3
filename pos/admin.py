from django.contrib import admin
from .models import (
    MenuCategory, MenuItem, MenuItemVariant, MenuSubCategory, Order, OrderItem, RecipeIngredient, Table,
)


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ['id', 'hotel', 'table_number', 'capacity', 'status', 'is_active']
    list_filter = ['hotel', 'status']
    search_fields = ['table_number']


@admin.register(MenuCategory)
class MenuCategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'hotel', 'name', 'display_order', 'is_active']
    list_filter = ['hotel']


@admin.register(MenuSubCategory)
class MenuSubCategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'category', 'name', 'is_active']


class MenuItemVariantInline(admin.TabularInline):
    model = MenuItemVariant
    extra = 0


class RecipeIngredientInline(admin.TabularInline):
    model = RecipeIngredient
    extra = 0


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'hotel', 'name', 'category', 'price', 'is_available', 'is_active', 'total_orders']
    list_filter = ['hotel', 'category', 'is_available']
    search_fields = ['name']
    inlines = [MenuItemVariantInline, RecipeIngredientInline]


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['menu_item', 'name', 'variant', 'quantity', 'price', 'subtotal']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'hotel', 'order_type', 'table_number', 'status', 'payment_status',
                    'total', 'placed_at']
    list_filter = ['status', 'payment_status', 'order_type', 'is_public_order']
    search_fields = ['order_number', 'customer_name', 'customer_phone']
    readonly_fields = ['order_number', 'subtotal', 'tax', 'total', 'placed_at']
    inlines = [OrderItemInline]
