"""
Shared fixtures for the orders/payments test suites (no network, no gateway).
"""

from __future__ import annotations

from decimal import Decimal

from catalog.models import FoodItem, FoodItemAddOn, FoodItemVariant, Vendor
from orders import lifecycle

CUSTOMER = "cust-1"
OTHER_CUSTOMER = "cust-2"
VENDOR_OWNER = "vend-1"
ADMIN = "admin-1"

ADDRESS = {
    "type": "home",
    "name": "Asha",
    "address": "12 MG Road",
    "city": "Pune",
    "state": "MH",
    "pincode": "411001",
    "email": "asha@example.com",
}


def make_vendor(owner_id: str = VENDOR_OWNER, **kwargs) -> Vendor:
    defaults = {
        "business_name": f"Kitchen {owner_id}",
        "contact_email": f"{owner_id}@example.com",
        "delivery_fee": Decimal("30.00"),
        "estimated_delivery_minutes": 35,
    }
    defaults.update(kwargs)
    return Vendor.objects.create(owner_id=owner_id, **defaults)


def make_item(vendor: Vendor, name: str = "Paneer Tikka", price: str = "280.00", **kwargs) -> FoodItem:
    return FoodItem.objects.create(vendor=vendor, name=name, price=Decimal(price), **kwargs)


def add_variant(item: FoodItem, name: str, price: str, is_available: bool = True) -> FoodItemVariant:
    return FoodItemVariant.objects.create(food_item=item, name=name, price=Decimal(price), is_available=is_available)


def add_add_on(item: FoodItem, name: str, price: str, is_available: bool = True) -> FoodItemAddOn:
    return FoodItemAddOn.objects.create(food_item=item, name=name, price=Decimal(price), is_available=is_available)


def place_order(item: FoodItem, quantity: int = 2, payment_method: str = "online", customer_id: str = CUSTOMER, **line):
    return lifecycle.create_order(
        customer_id=customer_id,
        lines=[{"food_item_id": item.pk, "quantity": quantity, **line}],
        delivery_address=dict(ADDRESS),
        payment_method=payment_method,
    )


def walk(order, *statuses, caller_id: str = VENDOR_OWNER, role: str = "vendor"):
    for status in statuses:
        order = lifecycle.advance_status(caller_id, role, order.pk, status)
    return order
