"""
catalog.models.vendor

Vendor record as seen by order processing. Onboarding/profile editing live
elsewhere; here we only need the open/active switches, the flat delivery fee
and the lifetime aggregates bumped when an order is delivered.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from .base import TimeStampedModel


class Vendor(TimeStampedModel):
    owner_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Caller id of the vendor account that owns this storefront.",
    )
    business_name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True, default="")

    is_active = models.BooleanField(default=True, db_index=True)
    is_open = models.BooleanField(default=True)

    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    estimated_delivery_minutes = models.PositiveIntegerField(default=30)

    # Lifetime aggregates; only ever changed through F() increments.
    total_orders = models.PositiveIntegerField(default=0)
    total_earnings = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ("business_name",)
        indexes = [
            models.Index(fields=["is_active", "is_open"]),
        ]

    @property
    def accepts_orders(self) -> bool:
        return self.is_active and self.is_open

    def __str__(self) -> str:
        return self.business_name
