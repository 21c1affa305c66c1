"""
orders.serializers

DRF serializers. Request serializers only coerce JSON shapes/types; the
business validation lives in orders.inputs and runs inside the services.
OrderSerializer renders an Order for responses.
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order, OrderLine


# ---------------- requests ----------------

class CartLineSerializer(serializers.Serializer):
    food_item_id = serializers.IntegerField()
    quantity = serializers.IntegerField()
    variant_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    add_on_names = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, default=list)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class CreateOrderSerializer(serializers.Serializer):
    lines = CartLineSerializer(many=True, allow_empty=True)
    delivery_address = serializers.DictField()
    payment_method = serializers.CharField()
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="")


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField()
    note = serializers.CharField(required=False, allow_blank=True, default="")


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class TrackingUpdateSerializer(serializers.Serializer):
    status = serializers.CharField(required=False, allow_blank=True, default="")
    note = serializers.CharField(required=False, allow_blank=True, default="")
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True, default=None)
    longitude = serializers.DecimalField(max_digits=10, decimal_places=6, required=False, allow_null=True, default=None)


# ---------------- responses ----------------

class OrderLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderLine
        fields = [
            "position",
            "food_item_id",
            "food_item_name",
            "quantity",
            "unit_price",
            "variant_name",
            "variant_price",
            "add_ons",
            "add_ons_price",
            "line_subtotal",
            "note",
        ]


class OrderSerializer(serializers.ModelSerializer):
    lines = OrderLineSerializer(many=True, read_only=True)
    pricing = serializers.SerializerMethodField()
    payment = serializers.SerializerMethodField()
    refund = serializers.SerializerMethodField()
    timeline = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "vendor_id",
            "status",
            "delivery_address",
            "special_instructions",
            "lines",
            "pricing",
            "payment",
            "refund",
            "timeline",
            "estimated_delivery_minutes",
            "actual_delivery_time",
            "created_at",
            "updated_at",
        ]

    def get_pricing(self, obj):
        return obj.pricing.as_dict()

    def get_payment(self, obj):
        # signature stays server-side
        return {
            "method": obj.payment_method,
            "status": obj.payment_status,
            "intent_id": obj.payment_intent_id,
            "gateway_payment_id": obj.payment_gateway_id,
            "amount": str(obj.payment_amount),
        }

    def get_refund(self, obj):
        if obj.refund_status == "none":
            return None
        data = obj.refund.as_dict()
        return {k: data[k] for k in ("amount", "reason", "status", "gateway_refund_id")}

    def get_timeline(self, obj):
        return [e.as_dict() for e in obj.timeline]
