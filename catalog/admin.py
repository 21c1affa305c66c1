"""
Catalog - Django Admin Registrations

Aggregates (total_orders / total_earnings) are read-only here; they are only
changed by the delivered-order stats update.
"""

from django.contrib import admin

from .models import FoodItem, FoodItemAddOn, FoodItemVariant, Vendor


class FoodItemVariantInline(admin.TabularInline):
    model = FoodItemVariant
    extra = 0


class FoodItemAddOnInline(admin.TabularInline):
    model = FoodItemAddOn
    extra = 0


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("id", "business_name", "owner_id", "is_active", "is_open", "delivery_fee", "total_orders", "total_earnings")
    search_fields = ("business_name", "owner_id", "contact_email")
    list_filter = ("is_active", "is_open")
    readonly_fields = ("total_orders", "total_earnings", "created_at", "updated_at")


@admin.register(FoodItem)
class FoodItemAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "vendor", "price", "is_available", "total_orders")
    search_fields = ("name", "vendor__business_name")
    list_filter = ("is_available",)
    readonly_fields = ("total_orders", "created_at", "updated_at")
    inlines = [FoodItemVariantInline, FoodItemAddOnInline]
