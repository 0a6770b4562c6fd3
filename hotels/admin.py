from django.contrib import admin
from .models import Hotel, Staff


@admin.register(Hotel)
class HotelAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'code', 'status', 'tax_rate']
    list_filter = ['status']
    search_fields = ['name', 'code']


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'email', 'role', 'hotel', 'is_active']
    list_filter = ['role', 'is_active']
    search_fields = ['name', 'email']
