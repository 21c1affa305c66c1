"""
orders.models.order

The Order record plus its price-stamped lines.

Sub-records (payment, pricing, delivery, refund) are stored as prefixed
columns on the order row so one row lock / one version bump covers all of
them; read them back through the `payment`, `pricing` and `refund` properties.

Pricing columns and lines are written once at creation (see
`IMMUTABLE_FIELDS`); orders.store refuses guarded updates that touch them.

========= CHANGE LOG =========
2026-09-02 • ADD: stats_applied flag + version column for guarded updates.  # CHANGED:
2026-08-21 • ADD: refund sub-record (amount/reason/status/gateway id).
2026-08-14 • ADD: Order + OrderLine models.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from django.db import models
from django.db.models import Max

from .timeline import AppendOnlyError, TimelineEntry


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    ONLINE = "online", "Online (gateway)"
    COD = "cod", "Cash on delivery"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class RefundStatus(models.TextChoices):
    NONE = "none", "None"
    REQUESTED = "requested", "Requested"
    PROCESSED = "processed", "Processed"


MONEY = {"max_digits": 12, "decimal_places": 2}

IMMUTABLE_FIELDS = frozenset({
    "order_number",
    "customer_id",
    "vendor",
    "vendor_id",
    "delivery_address",
    "payment_method",
    "payment_amount",
    "subtotal",
    "delivery_fee",
    "tax",
    "discount",
    "total",
})


@dataclass(frozen=True)
class PriceSnapshot:
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "delivery_fee": str(self.delivery_fee),
            "tax": str(self.tax),
            "discount": str(self.discount),
            "total": str(self.total),
        }


@dataclass(frozen=True)
class PaymentRecord:
    method: str
    status: str
    intent_id: str
    gateway_payment_id: str
    signature: str
    amount: Decimal


@dataclass(frozen=True)
class RefundRecord:
    order_id: int
    order_number: str
    amount: Decimal
    reason: str
    status: str
    gateway_refund_id: str
    payment_status: str

    def as_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "amount": str(self.amount),
            "reason": self.reason,
            "status": self.status,
            "gateway_refund_id": self.gateway_refund_id,
            "payment_status": self.payment_status,
        }


class Order(models.Model):
    order_number = models.CharField(max_length=32, unique=True)
    customer_id = models.CharField(max_length=64, db_index=True)
    vendor = models.ForeignKey(
        "catalog.Vendor",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    delivery_address = models.JSONField(help_text="Address snapshot taken at checkout.")
    special_instructions = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=32,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )

    # ---- payment ----
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    payment_intent_id = models.CharField(max_length=255, blank=True, default="", db_index=True)
    payment_gateway_id = models.CharField(max_length=255, blank=True, default="")
    payment_signature = models.CharField(max_length=255, blank=True, default="")
    payment_amount = models.DecimalField(**MONEY)

    # ---- pricing snapshot ----
    subtotal = models.DecimalField(**MONEY)
    delivery_fee = models.DecimalField(**MONEY, default=Decimal("0.00"))
    tax = models.DecimalField(**MONEY, default=Decimal("0.00"))
    discount = models.DecimalField(**MONEY, default=Decimal("0.00"))
    total = models.DecimalField(**MONEY)

    # ---- delivery ----
    estimated_delivery_minutes = models.PositiveIntegerField(default=30)
    actual_delivery_time = models.DateTimeField(null=True, blank=True)
    delivery_person = models.JSONField(default=dict, blank=True)

    # ---- refund ----
    refund_amount = models.DecimalField(**MONEY, default=Decimal("0.00"))
    refund_reason = models.CharField(max_length=500, blank=True, default="")
    refund_status = models.CharField(
        max_length=16,
        choices=RefundStatus.choices,
        default=RefundStatus.NONE,
    )
    refund_gateway_id = models.CharField(max_length=255, blank=True, default="")

    # ---- bookkeeping ----
    stats_applied = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["customer_id", "created_at"]),
            models.Index(fields=["vendor", "created_at"]),
        ]

    # ---- sub-record views ----
    @property
    def pricing(self) -> PriceSnapshot:
        return PriceSnapshot(
            subtotal=self.subtotal,
            delivery_fee=self.delivery_fee,
            tax=self.tax,
            discount=self.discount,
            total=self.total,
        )

    @property
    def payment(self) -> PaymentRecord:
        return PaymentRecord(
            method=self.payment_method,
            status=self.payment_status,
            intent_id=self.payment_intent_id,
            gateway_payment_id=self.payment_gateway_id,
            signature=self.payment_signature,
            amount=self.payment_amount,
        )

    @property
    def refund(self) -> RefundRecord:
        return RefundRecord(
            order_id=self.pk,
            order_number=self.order_number,
            amount=self.refund_amount,
            reason=self.refund_reason,
            status=self.refund_status,
            gateway_refund_id=self.refund_gateway_id,
            payment_status=self.payment_status,
        )

    # ---- timeline ----
    @property
    def timeline(self) -> Tuple[TimelineEntry, ...]:
        return tuple(self.timeline_entries.order_by("seq"))

    def append_timeline(self, status: str, note: str = "") -> TimelineEntry:
        """The only way a timeline grows. Caller holds the order row lock."""
        last: Optional[int] = self.timeline_entries.aggregate(m=Max("seq"))["m"]
        return TimelineEntry.objects.create(
            order=self,
            seq=(last or 0) + 1,
            status=status,
            note=(note or "")[:500],
        )

    def delete(self, *args, **kwargs):
        raise AppendOnlyError("Orders are never deleted; cancel them instead.")

    def __str__(self) -> str:
        return f"Order({self.order_number})<{self.status}>"


class OrderLine(models.Model):
    """A price-stamped line; written once with its order."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="lines",
    )
    position = models.PositiveIntegerField()
    food_item = models.ForeignKey(
        "catalog.FoodItem",
        on_delete=models.PROTECT,
        related_name="order_lines",
    )
    food_item_name = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField()

    unit_price = models.DecimalField(**MONEY)
    variant_name = models.CharField(max_length=100, blank=True, default="")
    variant_price = models.DecimalField(**MONEY, null=True, blank=True)
    add_ons = models.JSONField(default=list, blank=True, help_text="[{name, price}] stamped at checkout.")
    add_ons_price = models.DecimalField(**MONEY, default=Decimal("0.00"))
    line_subtotal = models.DecimalField(**MONEY)
    note = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        ordering = ("order", "position")
        constraints = [
            models.UniqueConstraint(fields=["order", "position"], name="uniq_line_position_per_order"),
        ]

    def as_dict(self) -> dict:
        return {
            "food_item_id": self.food_item_id,
            "food_item_name": self.food_item_name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "variant": (
                {"name": self.variant_name, "price": str(self.variant_price)}
                if self.variant_name else None
            ),
            "add_ons": self.add_ons,
            "add_ons_price": str(self.add_ons_price),
            "line_subtotal": str(self.line_subtotal),
            "note": self.note,
        }

    def __str__(self) -> str:
        return f"{self.quantity} × {self.food_item_name}"
