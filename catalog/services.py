"""
catalog.services

Read-only catalog lookups used by order pricing.

Pricing never touches the catalog models directly; it goes through
`get_food_item()` / `get_vendor()` so the live catalog is read once per line
and handed over as plain, frozen snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from catalog.models import FoodItem, Vendor


@dataclass(frozen=True)
class OptionView:
    name: str
    price: Decimal
    is_available: bool


@dataclass(frozen=True)
class FoodItemView:
    id: int
    name: str
    price: Decimal
    is_available: bool
    vendor_id: int
    variants: Tuple[OptionView, ...] = ()
    add_ons: Tuple[OptionView, ...] = ()

    def variant(self, name: str) -> Optional[OptionView]:
        for v in self.variants:
            if v.name == name:
                return v
        return None

    def add_on(self, name: str) -> Optional[OptionView]:
        for a in self.add_ons:
            if a.name == name:
                return a
        return None


@dataclass(frozen=True)
class VendorView:
    id: int
    business_name: str
    is_active: bool
    is_open: bool
    delivery_fee: Decimal
    estimated_delivery_minutes: int

    @property
    def accepts_orders(self) -> bool:
        return self.is_active and self.is_open


def get_food_item(food_item_id) -> Optional[FoodItemView]:
    """Return a snapshot of the food item, or None if it does not exist."""
    try:
        item = FoodItem.objects.prefetch_related("variants", "add_ons").get(pk=food_item_id)
    except (FoodItem.DoesNotExist, ValueError, TypeError):
        return None

    return FoodItemView(
        id=item.pk,
        name=item.name,
        price=item.price,
        is_available=item.is_available,
        vendor_id=item.vendor_id,
        variants=tuple(OptionView(v.name, v.price, v.is_available) for v in item.variants.all()),
        add_ons=tuple(OptionView(a.name, a.price, a.is_available) for a in item.add_ons.all()),
    )


def get_vendor(vendor_id) -> Optional[VendorView]:
    try:
        vendor = Vendor.objects.get(pk=vendor_id)
    except (Vendor.DoesNotExist, ValueError, TypeError):
        return None

    return VendorView(
        id=vendor.pk,
        business_name=vendor.business_name,
        is_active=vendor.is_active,
        is_open=vendor.is_open,
        delivery_fee=vendor.delivery_fee,
        estimated_delivery_minutes=vendor.estimated_delivery_minutes,
    )
