"""
orders.store

Persistence primitives for order records on top of the Django ORM.

- lock_order(): row-locked read inside an open transaction.
- save_guarded(): compare-and-increment on Order.version; losing raises Conflict.
- increment(): atomic F() increments for aggregate counters.
- next_sequence_value(): collision-free counter for order numbers.
- advance_sequence_to(): resync a counter that fell behind existing rows.

Every helper that writes must be called inside `transaction.atomic()`.
On backends without row locks (SQLite) select_for_update() is a no-op and the
version check is what serializes writers.
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from orders import errors
from orders.models import IMMUTABLE_FIELDS, Order, Sequence

log = logging.getLogger("foodmarket")


def get_order(order_id) -> Order:
    try:
        return Order.objects.select_related("vendor").get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise errors.NotFound(order_id=order_id)


def lock_order(order_id) -> Order:
    """Fetch an order with its row locked until the surrounding transaction ends."""
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_order() must run inside transaction.atomic().")
    try:
        return Order.objects.select_for_update().select_related("vendor").get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise errors.NotFound(order_id=order_id)


def save_guarded(order: Order, fields: Iterable[str]) -> Order:
    """
    Write `fields` only if nobody bumped the order's version since we read it.

    Raises Conflict when the row changed underneath us; the caller's
    transaction then rolls back every other write it made.
    """
    fields = list(dict.fromkeys(fields))
    touched = IMMUTABLE_FIELDS.intersection(fields)
    if touched:
        raise ValueError(f"Order fields are immutable after creation: {sorted(touched)}")

    values = {f: getattr(order, f) for f in fields}
    now = timezone.now()
    updated = Order.objects.filter(pk=order.pk, version=order.version).update(
        version=F("version") + 1,
        updated_at=now,
        **values,
    )
    if updated != 1:
        log.warning(
            "[orders][store] version conflict order=%s expected_version=%s fields=%s",
            order.pk, order.version, fields,
        )
        raise errors.Conflict(order_id=order.pk)

    order.version += 1
    order.updated_at = now
    return order


def increment(model, pk, **deltas) -> int:
    """Atomically add `deltas` to numeric columns of one row. Returns rows updated."""
    if not deltas:
        return 0
    return model.objects.filter(pk=pk).update(**{name: F(name) + amount for name, amount in deltas.items()})


def next_sequence_value(name: str) -> int:
    """
    Advance the named counter and return the new value.

    The UPDATE ... SET value = value + 1 takes the row's write lock, so two
    concurrent callers can never observe the same value.
    """
    with transaction.atomic():
        Sequence.objects.get_or_create(name=name)
        Sequence.objects.filter(name=name).update(value=F("value") + 1)
        return Sequence.objects.values_list("value", flat=True).get(name=name)


def advance_sequence_to(name: str, floor: int) -> None:
    """Move the named counter up to `floor` if it is behind. Never moves it back."""
    with transaction.atomic():
        Sequence.objects.get_or_create(name=name)
        Sequence.objects.filter(name=name, value__lt=floor).update(value=floor)
