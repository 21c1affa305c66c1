"""
orders.lifecycle

Order creation + the status state machine.

Exposed service functions (the DRF views in orders.views are thin wrappers):
- create_order()        price the cart, persist order + lines + first timeline entry
- advance_status()      vendor/admin moves along the kitchen/delivery edges
- cancel_order()        customer cancels while pending/confirmed
- get_order(), track_order(), add_tracking_update(), reorder()

`apply_transition()` is the single place a status changes. It runs inside the
caller's transaction with the order row locked: set status, append exactly one
timeline entry, run the hook for the new state, then one guarded save. The
payment reconciler uses it with the internal `payment` role.

Hooks:
- delivered  -> vendor/food-item aggregates via F() increments (once, stats_applied)
- cancelled  -> refund recorded through the configured refund policy

========= CHANGE LOG =========
2026-10-18 • FIX: collisions resync the order-number counter; refund reason kept apart from the timeline note.  # CHANGED:
2026-09-02 • ADD: reorder(), tracking updates, order-number retry on collision.
2026-08-21 • CHANGE: role check moved after edge check (InvalidTransition wins).
2026-08-14 • ADD: create_order / advance_status / cancel_order.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models.functions import Length
from django.utils import timezone

from catalog.models import FoodItem, Vendor
from orders import errors, store
from orders.inputs import (
    AdvanceStatusInput,
    CancelOrderInput,
    CartLine,
    CreateOrderInput,
    DeliveryAddress,
    OrderAccessInput,
    TrackingUpdateInput,
)
from orders.models import Order, OrderLine, OrderStatus, TrackingEntry
from orders.notifications import send_order_placed_emails
from orders.pricing import PricedOrder, PricingEngine
from orders.refunds import REFUND_FIELDS, record_refund
from orders.transitions import (
    ROLE_ADMIN,
    ROLE_CUSTOMER,
    ROLE_VENDOR,
    is_edge,
    role_may,
)

log = logging.getLogger("foodmarket")

ORDER_NUMBER_ATTEMPTS = 5
ORDER_NUMBER_SEQUENCE = "order_number"


def _clean(value: Any) -> str:
    return str(value or "").strip()


# ---------------- authorization ----------------

def _authorize(order: Order, caller_id: str, role: str) -> None:
    """Caller must own the order (customer), own its vendor (vendor) or be admin."""
    if role == ROLE_ADMIN:
        return
    if role == ROLE_CUSTOMER and str(order.customer_id) == str(caller_id):
        return
    if role == ROLE_VENDOR and str(order.vendor.owner_id) == str(caller_id):
        return
    raise errors.Forbidden()


# ---------------- creation ----------------

def _order_number_prefix() -> str:
    return getattr(settings, "ORDER_NUMBER_PREFIX", "ORD")


def _order_number() -> str:
    return f"{_order_number_prefix()}{store.next_sequence_value(ORDER_NUMBER_SEQUENCE):06d}"


def _resync_order_numbers() -> None:
    """Move the counter past the highest order number already on file."""
    prefix = _order_number_prefix()
    highest = (
        Order.objects.filter(order_number__startswith=prefix)
        .order_by(Length("order_number").desc(), "-order_number")
        .values_list("order_number", flat=True)
        .first()
    )
    suffix = (highest or "")[len(prefix):]
    if suffix.isdigit():
        store.advance_sequence_to(ORDER_NUMBER_SEQUENCE, int(suffix))
        log.warning("[orders][create] order number counter resynced to %s", suffix)


def _persist(data: CreateOrderInput, priced: PricedOrder, order_number: str, note: str) -> Order:
    snap = priced.snapshot
    order = Order.objects.create(
        order_number=order_number,
        customer_id=data.customer_id,
        vendor_id=priced.vendor_id,
        delivery_address=data.delivery_address.as_dict(),
        special_instructions=data.special_instructions,
        payment_method=data.payment_method,
        payment_amount=snap.total,
        subtotal=snap.subtotal,
        delivery_fee=snap.delivery_fee,
        tax=snap.tax,
        discount=snap.discount,
        total=snap.total,
        estimated_delivery_minutes=(
            priced.estimated_delivery_minutes
            or getattr(settings, "DEFAULT_DELIVERY_ESTIMATE_MINUTES", 30)
        ),
    )
    OrderLine.objects.bulk_create([
        OrderLine(
            order=order,
            position=line.position,
            food_item_id=line.food_item_id,
            food_item_name=line.food_item_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            variant_name=line.variant_name,
            variant_price=line.variant_price,
            add_ons=list(line.add_ons),
            add_ons_price=line.add_ons_price,
            line_subtotal=line.line_subtotal,
            note=line.note,
        )
        for line in priced.lines
    ])
    order.append_timeline(OrderStatus.PENDING, note)
    return order


def _place(data: CreateOrderInput, catalog=None, note: str = "Order placed successfully") -> Order:
    # Pricing reads the catalog only; nothing is written if it raises.
    priced = PricingEngine(catalog=catalog).price(data.lines, discount=data.discount)

    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        # Allocated outside the savepoint; a rolled-back insert keeps its number burned.
        order_number = _order_number()
        try:
            with transaction.atomic():
                order = _persist(data, priced, order_number, note)
                transaction.on_commit(lambda o=order: send_order_placed_emails(o))
            break
        except IntegrityError:
            log.warning("[orders][create] order number collision number=%s attempt=%s", order_number, attempt)
            _resync_order_numbers()
    else:
        raise errors.Conflict("Could not allocate an order number, please retry.")

    log.info(
        "[orders][create] placed order=%s vendor=%s total=%s method=%s",
        order.order_number, priced.vendor_id, order.total, order.payment_method,
    )
    return order


def create_order(
    customer_id,
    lines: Iterable,
    delivery_address,
    payment_method: str,
    special_instructions: str = "",
    discount: Any = "0.00",
    catalog=None,
) -> Order:
    data = CreateOrderInput.build(
        customer_id=customer_id,
        lines=lines,
        delivery_address=delivery_address,
        payment_method=payment_method,
        special_instructions=special_instructions,
        discount=discount,
    )
    return _place(data, catalog=catalog)


# ---------------- transitions ----------------

def _on_delivered(order: Order) -> List[str]:
    order.actual_delivery_time = timezone.now()
    fields = ["actual_delivery_time"]
    if order.stats_applied:
        return fields

    store.increment(Vendor, order.vendor_id, total_orders=1, total_earnings=order.total)
    quantities: Dict[int, int] = {}
    for line in order.lines.all():
        quantities[line.food_item_id] = quantities.get(line.food_item_id, 0) + line.quantity
    for food_item_id, qty in quantities.items():
        store.increment(FoodItem, food_item_id, total_orders=qty)

    order.stats_applied = True
    return fields + ["stats_applied"]


def _on_cancelled(order: Order, reason: str) -> List[str]:
    if record_refund(order, reason):
        return list(REFUND_FIELDS)
    return []


def apply_transition(order: Order, new_status: str, role: str, note: str = "", reason: str = "") -> Order:
    """
    Move a locked order along one edge. Must run inside transaction.atomic()
    with `order` obtained from store.lock_order().

    `note` goes on the timeline entry; `reason` is what a cancellation refund
    records (the refund policy falls back to its own default when empty).
    """
    current = str(order.status)
    new_status = str(new_status)
    if not is_edge(current, new_status):
        raise errors.InvalidTransition(
            f"Order cannot move from {current} to {new_status}.",
            from_status=current,
            to_status=new_status,
        )
    if not role_may(role, current, new_status):
        raise errors.Forbidden(f"Role '{role}' cannot move an order to {new_status}.")

    order.status = new_status
    order.append_timeline(new_status, note)

    fields = ["status"]
    if new_status == OrderStatus.DELIVERED.value:
        fields += _on_delivered(order)
    elif new_status == OrderStatus.CANCELLED.value:
        fields += _on_cancelled(order, reason)

    store.save_guarded(order, fields)
    log.info(
        "[orders][status] order=%s %s -> %s role=%s",
        order.order_number, current, new_status, role,
    )
    return order


def advance_status(caller_id, role, order_id, new_status, note: str = "") -> Order:
    data = AdvanceStatusInput(
        caller_id=_clean(caller_id),
        role=_clean(role),
        order_id=order_id,
        new_status=_clean(new_status),
        note=_clean(note),
    ).validate()

    with transaction.atomic():
        order = store.lock_order(data.order_id)
        _authorize(order, data.caller_id, data.role)
        return apply_transition(order, data.new_status, data.role, data.note)


def cancel_order(customer_id, order_id, reason: str = "") -> Order:
    data = CancelOrderInput(
        customer_id=_clean(customer_id),
        order_id=order_id,
        reason=_clean(reason),
    ).validate()

    with transaction.atomic():
        order = store.lock_order(data.order_id)
        _authorize(order, data.customer_id, ROLE_CUSTOMER)
        if not is_edge(order.status, OrderStatus.CANCELLED):
            raise errors.InvalidTransition(
                "Order cannot be cancelled at this stage.",
                from_status=str(order.status),
            )
        return apply_transition(
            order,
            OrderStatus.CANCELLED,
            ROLE_CUSTOMER,
            data.reason or "Cancelled by customer",
            reason=data.reason,
        )


# ---------------- reads ----------------

def get_order(caller_id, role, order_id) -> Order:
    data = OrderAccessInput(caller_id=_clean(caller_id), role=_clean(role), order_id=order_id).validate()
    order = store.get_order(data.order_id)
    _authorize(order, data.caller_id, data.role)
    return order


def estimated_delivery_at(order: Order):
    if order.actual_delivery_time:
        return order.actual_delivery_time
    if not order.created_at:
        return None
    return order.created_at + timedelta(minutes=order.estimated_delivery_minutes or 0)


def track_order(caller_id, role, order_id) -> dict:
    order = get_order(caller_id, role, order_id)
    estimate = estimated_delivery_at(order)
    return {
        "order_number": order.order_number,
        "status": order.status,
        "timeline": [e.as_dict() for e in order.timeline],
        "estimated_delivery": estimate.isoformat() if estimate else None,
        "actual_delivery_time": (
            order.actual_delivery_time.isoformat() if order.actual_delivery_time else None
        ),
        "delivery_person": order.delivery_person or None,
        "tracking": [t.as_dict() for t in order.tracking_entries.all()],
        "vendor": {"id": order.vendor_id, "business_name": order.vendor.business_name},
    }


# ---------------- tracking ----------------

def add_tracking_update(
    caller_id,
    role,
    order_id,
    status: str = "",
    note: str = "",
    latitude: Optional[Any] = None,
    longitude: Optional[Any] = None,
) -> TrackingEntry:
    try:
        lat = Decimal(str(latitude)) if latitude not in (None, "") else None
        lng = Decimal(str(longitude)) if longitude not in (None, "") else None
    except ArithmeticError:
        raise errors.ValidationError("latitude/longitude must be numbers.")

    data = TrackingUpdateInput(
        caller_id=_clean(caller_id),
        role=_clean(role),
        order_id=order_id,
        status=_clean(status)[:64],
        note=_clean(note),
        latitude=lat,
        longitude=lng,
    ).validate()

    with transaction.atomic():
        order = store.lock_order(data.order_id)
        _authorize(order, data.caller_id, data.role)
        if str(order.status) in (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value):
            raise errors.InvalidTransition("Tracking is closed for this order.")
        entry = TrackingEntry.objects.create(
            order=order,
            status=data.status,
            note=data.note,
            latitude=data.latitude.quantize(Decimal("0.000001")) if data.latitude is not None else None,
            longitude=data.longitude.quantize(Decimal("0.000001")) if data.longitude is not None else None,
        )
    log.info("[orders][tracking] order=%s status=%s", order.order_number, data.status or "-")
    return entry


# ---------------- reorder ----------------

def reorder(customer_id, order_id, catalog=None) -> Order:
    """New order from an old one's lines, re-priced against today's catalog."""
    customer_id = _clean(customer_id)
    original = get_order(customer_id, ROLE_CUSTOMER, order_id)

    lines = tuple(
        CartLine(
            food_item_id=line.food_item_id,
            quantity=line.quantity,
            variant_name=line.variant_name or None,
            add_on_names=tuple(a.get("name", "") for a in (line.add_ons or [])),
            note=line.note,
        )
        for line in original.lines.all()
    )
    data = CreateOrderInput(
        customer_id=customer_id,
        lines=lines,
        delivery_address=DeliveryAddress.from_payload(original.delivery_address),
        payment_method=original.payment_method,
        special_instructions=original.special_instructions,
    ).validate()

    order = _place(data, catalog=catalog, note="Reorder placed successfully")
    log.info("[orders][reorder] order=%s from=%s", order.order_number, original.order_number)
    return order
