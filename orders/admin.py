"""
Orders - Django Admin Registrations

Orders are read-mostly here: pricing, lines and timeline are shown but never
edited, and nothing can be deleted. Status changes go through the API so the
timeline and the stats/refund hooks stay consistent.
"""

from django.contrib import admin

from .models import Order, OrderLine, TimelineEntry, TrackingEntry


class _ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class OrderLineInline(_ReadOnlyInline):
    model = OrderLine
    fields = ("position", "food_item_name", "quantity", "unit_price", "variant_name", "add_ons", "line_subtotal", "note")
    readonly_fields = fields


class TimelineEntryInline(_ReadOnlyInline):
    model = TimelineEntry
    fields = ("seq", "status", "timestamp", "note")
    readonly_fields = fields


class TrackingEntryInline(_ReadOnlyInline):
    model = TrackingEntry
    fields = ("timestamp", "status", "note", "latitude", "longitude")
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer_id", "vendor", "status", "payment_method", "payment_status", "total", "created_at")
    search_fields = ("order_number", "customer_id", "payment_intent_id", "payment_gateway_id")
    list_filter = ("status", "payment_method", "payment_status", "refund_status")
    ordering = ("-created_at",)
    exclude = ("payment_signature",)
    readonly_fields = (
        "order_number", "customer_id", "vendor", "delivery_address", "special_instructions",
        "status", "payment_method", "payment_status", "payment_intent_id", "payment_gateway_id", "payment_amount",
        "subtotal", "delivery_fee", "tax", "discount", "total",
        "estimated_delivery_minutes", "actual_delivery_time", "delivery_person",
        "refund_amount", "refund_reason", "refund_status", "refund_gateway_id",
        "stats_applied", "version", "created_at", "updated_at",
    )
    inlines = [OrderLineInline, TimelineEntryInline, TrackingEntryInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
