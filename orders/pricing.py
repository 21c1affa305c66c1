"""
orders.pricing

Resolves cart lines against the live catalog and produces the authoritative
price snapshot that is stamped onto the order.

Rules:
- unit price = named variant's price (variant must exist and be available),
  else the item's base price
- add-ons price = sum of the named add-ons (each must exist and be available)
- line subtotal = (unit price + add-ons price) × quantity
- delivery fee = vendor's flat fee; tax = subtotal × ORDER_TAX_RATE
- total = subtotal + delivery fee + tax − discount

Tax stays unrounded until the snapshot is built; only then are tax and total
rounded half-up to cents. All other inputs are already whole cents, so
total == subtotal + delivery_fee + tax − discount holds on the rounded values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from django.conf import settings

from catalog import services as catalog_services
from orders import errors
from orders.inputs import CartLine
from orders.models import PriceSnapshot

log = logging.getLogger("foodmarket")

CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value: Decimal) -> int:
    """Gateway amount (paise/cents) for a 2-decimal money value."""
    return int((to_cents(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PricedLine:
    position: int
    food_item_id: int
    food_item_name: str
    quantity: int
    unit_price: Decimal
    variant_name: str
    variant_price: Optional[Decimal]
    add_ons: Tuple[dict, ...]
    add_ons_price: Decimal
    line_subtotal: Decimal
    note: str


@dataclass(frozen=True)
class PricedOrder:
    vendor_id: int
    vendor_name: str
    estimated_delivery_minutes: int
    lines: Tuple[PricedLine, ...]
    snapshot: PriceSnapshot


class PricingEngine:
    """
    Prices one single-vendor cart. `catalog` needs get_food_item(id) and
    get_vendor(id); the default is catalog.services.
    """

    def __init__(self, catalog=None, tax_rate: Optional[Decimal] = None):
        self.catalog = catalog or catalog_services
        self.tax_rate = Decimal(str(tax_rate if tax_rate is not None else settings.ORDER_TAX_RATE))

    def price(self, lines: Sequence[CartLine], discount: Decimal = Decimal("0.00")) -> PricedOrder:
        if not lines:
            raise errors.ValidationError("Order must contain at least one item.")

        vendor = None
        priced: List[PricedLine] = []
        for position, line in enumerate(lines, start=1):
            item = self.catalog.get_food_item(line.food_item_id)
            if item is None or not item.is_available:
                raise errors.ItemUnavailable(
                    f"Food item {line.food_item_id} is not available.",
                    food_item_id=line.food_item_id,
                )

            if vendor is None:
                vendor = self._open_vendor(item.vendor_id)
            elif item.vendor_id != vendor.id:
                log.info(
                    "[orders][pricing] mixed vendor cart rejected first_vendor=%s line_vendor=%s",
                    vendor.id, item.vendor_id,
                )
                raise errors.MixedVendorOrder(vendor_ids=[vendor.id, item.vendor_id])

            priced.append(self._price_line(position, line, item))

        subtotal = sum((p.line_subtotal for p in priced), Decimal("0.00"))
        snapshot = self.snapshot(subtotal, vendor.delivery_fee, discount)
        return PricedOrder(
            vendor_id=vendor.id,
            vendor_name=vendor.business_name,
            estimated_delivery_minutes=vendor.estimated_delivery_minutes,
            lines=tuple(priced),
            snapshot=snapshot,
        )

    def snapshot(self, subtotal: Decimal, delivery_fee: Decimal, discount: Decimal = Decimal("0.00")) -> PriceSnapshot:
        subtotal = to_cents(subtotal)
        delivery_fee = to_cents(delivery_fee)
        discount = to_cents(discount)

        tax = subtotal * self.tax_rate  # unrounded until here
        total = subtotal + delivery_fee + tax - discount
        if total < 0:
            raise errors.ValidationError("discount cannot exceed the order amount.")

        return PriceSnapshot(
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            tax=to_cents(tax),
            discount=discount,
            total=to_cents(total),
        )

    # ---- helpers ----
    def _open_vendor(self, vendor_id):
        vendor = self.catalog.get_vendor(vendor_id)
        if vendor is None or not vendor.is_active or not vendor.is_open:
            name = getattr(vendor, "business_name", vendor_id)
            raise errors.ItemUnavailable(f"Vendor {name} is currently closed.", vendor_id=vendor_id)
        return vendor

    def _price_line(self, position: int, line: CartLine, item) -> PricedLine:
        unit_price = Decimal(item.price)
        variant_price = None
        if line.variant_name:
            variant = item.variant(line.variant_name)
            if variant is None or not variant.is_available:
                raise errors.ItemUnavailable(
                    f"Variant '{line.variant_name}' of {item.name} is not available.",
                    food_item_id=item.id,
                )
            unit_price = variant_price = Decimal(variant.price)

        stamped_add_ons = []
        for name in line.add_on_names:
            add_on = item.add_on(name)
            if add_on is None or not add_on.is_available:
                raise errors.ItemUnavailable(
                    f"Add-on '{name}' for {item.name} is not available.",
                    food_item_id=item.id,
                )
            stamped_add_ons.append({"name": add_on.name, "price": str(to_cents(add_on.price))})

        add_ons_price = sum((Decimal(a["price"]) for a in stamped_add_ons), Decimal("0.00"))
        return PricedLine(
            position=position,
            food_item_id=item.id,
            food_item_name=item.name,
            quantity=line.quantity,
            unit_price=to_cents(unit_price),
            variant_name=line.variant_name or "",
            variant_price=to_cents(variant_price) if variant_price is not None else None,
            add_ons=tuple(stamped_add_ons),
            add_ons_price=to_cents(add_ons_price),
            line_subtotal=to_cents((unit_price + add_ons_price) * line.quantity),
            note=line.note,
        )


def price_lines(lines: Iterable[CartLine], discount: Decimal = Decimal("0.00"), catalog=None) -> PricedOrder:
    return PricingEngine(catalog=catalog).price(list(lines), discount=discount)
