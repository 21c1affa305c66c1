"""
orders.refunds

Refund policy + refund processing.

Eligibility: the order is cancelled AND its payment completed.
Amount: the most recent status recorded before the cancellation entry decides;
pending/confirmed refund the full total, anything later refunds half.

The rule itself is one function picked by settings.ORDER_REFUND_POLICY
(dotted path), called with the locked order and returning a Decimal (0 means
"not eligible").

process_refund() runs in three steps so no gateway call ever happens while
the order row is locked:
1) record refund as `requested` (if absent)
2) call gateway.refund() with an idempotency key derived from order + amount
3) mark refund `processed` and payment `refunded`
A gateway failure between 1 and 3 leaves the refund `requested`; the next
attempt replays step 2 with the same key, so the customer is never refunded
twice.

========= CHANGE LOG =========
2026-09-02 • ADD: refund_status() read op; idempotent gateway retries.  # CHANGED:
2026-08-21 • ADD: default_refund_policy + process_refund.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from orders import errors, store
from orders.inputs import OrderAccessInput, ProcessRefundInput, to_money
from orders.models import Order, OrderStatus, PaymentStatus, RefundRecord, RefundStatus
from orders.pricing import to_cents, to_minor_units
from orders.transitions import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_VENDOR, payment_may_move

log = logging.getLogger("foodmarket")

FULL_REFUND_STATES = frozenset({OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value})
PARTIAL_REFUND_RATE = Decimal("0.5")


def status_before_cancellation(timeline: Iterable) -> Optional[str]:
    """
    Walk back from the last `cancelled` entry to the newest entry with a
    different status. None when there is no cancellation (or nothing before it).
    """
    entries = list(timeline)
    cancel_idx = None
    for idx in range(len(entries) - 1, -1, -1):
        if str(entries[idx].status) == OrderStatus.CANCELLED.value:
            cancel_idx = idx
            break
    if cancel_idx is None:
        return None
    for idx in range(cancel_idx - 1, -1, -1):
        status = str(entries[idx].status)
        if status != OrderStatus.CANCELLED.value:
            return status
    return None


def is_refund_eligible(order: Order) -> bool:
    return (
        str(order.status) == OrderStatus.CANCELLED.value
        and str(order.payment_status) == PaymentStatus.COMPLETED.value
    )


def default_refund_policy(order: Order) -> Decimal:
    if not is_refund_eligible(order):
        return Decimal("0.00")
    prior = status_before_cancellation(order.timeline)
    if prior in FULL_REFUND_STATES:
        return to_cents(order.total)
    return to_cents(order.total * PARTIAL_REFUND_RATE)


def get_refund_policy():
    return import_string(settings.ORDER_REFUND_POLICY)


def record_refund(order: Order, reason: str = "") -> bool:
    """
    Stamp the refund request onto a locked, already-cancelled order.

    Only sets fields on the instance; the caller saves them (guarded) together
    with the rest of its unit of work. Returns True if a refund was recorded.
    """
    if str(order.refund_status) != RefundStatus.NONE.value:
        return False
    amount = get_refund_policy()(order)
    if amount <= 0:
        return False
    order.refund_amount = to_cents(amount)
    order.refund_reason = (reason or "Order cancelled")[:500]
    order.refund_status = RefundStatus.REQUESTED
    log.info(
        "[orders][refund] requested order=%s amount=%s",
        order.order_number, order.refund_amount,
    )
    return True


REFUND_FIELDS = ("refund_amount", "refund_reason", "refund_status")


def _authorize_refund(order: Order, caller_id: str, role: str) -> None:
    if role == ROLE_ADMIN:
        return
    if role == ROLE_VENDOR and str(order.vendor.owner_id) == str(caller_id):
        return
    raise errors.Forbidden("Only the vendor or an admin can process refunds.")


def _request_refund(data: ProcessRefundInput) -> Order:
    with transaction.atomic():
        order = store.lock_order(data.order_id)
        _authorize_refund(order, data.caller_id, data.role)

        if str(order.refund_status) == RefundStatus.PROCESSED.value:
            return order
        if not is_refund_eligible(order):
            raise errors.InvalidTransition("Order is not eligible for a refund.")

        if str(order.refund_status) == RefundStatus.NONE.value:
            if data.amount is not None:
                if data.amount > order.total:
                    raise errors.ValidationError("Refund amount cannot exceed the order total.")
                order.refund_amount = to_cents(data.amount)
                order.refund_reason = (data.reason or "Refund requested")[:500]
                order.refund_status = RefundStatus.REQUESTED
            elif not record_refund(order, data.reason):
                raise errors.InvalidTransition("Order is not eligible for a refund.")
            store.save_guarded(order, REFUND_FIELDS)
        return order


def process_refund(caller_id, role, order_id, amount=None, reason: str = "", gateway=None) -> RefundRecord:
    data = ProcessRefundInput(
        caller_id=str(caller_id or "").strip(),
        role=str(role or "").strip(),
        order_id=order_id,
        amount=to_money(amount, "amount") if amount not in (None, "") else None,
        reason=str(reason or "").strip(),
    ).validate()

    order = _request_refund(data)
    if str(order.refund_status) == RefundStatus.PROCESSED.value:
        return order.refund

    if gateway is None:
        from payments.gateway import get_gateway
        gateway = get_gateway()

    amount_minor = to_minor_units(order.refund_amount)
    idempotency_key = f"refund:{order.order_number}:{amount_minor}"
    try:
        result = gateway.refund(order.payment_gateway_id, amount_minor, idempotency_key=idempotency_key)
    except errors.GatewayError as e:
        log.warning(
            "[orders][refund] gateway refund failed order=%s code=%s (refund stays requested)",
            order.order_number, e.code,
        )
        raise

    with transaction.atomic():
        order = store.lock_order(order.pk)
        if str(order.refund_status) == RefundStatus.PROCESSED.value:
            return order.refund
        order.refund_status = RefundStatus.PROCESSED
        order.refund_gateway_id = result.refund_id
        fields = ["refund_status", "refund_gateway_id"]
        if payment_may_move(order.payment_status, PaymentStatus.REFUNDED):
            order.payment_status = PaymentStatus.REFUNDED
            fields.append("payment_status")
        store.save_guarded(order, fields)

    log.info(
        "[orders][refund] processed order=%s amount=%s",
        order.order_number, order.refund_amount,
    )
    return order.refund


def refund_status(caller_id, role, order_id) -> RefundRecord:
    data = OrderAccessInput(
        caller_id=str(caller_id or "").strip(),
        role=str(role or "").strip(),
        order_id=order_id,
    ).validate()
    order = store.get_order(data.order_id)
    if data.role == ROLE_CUSTOMER:
        if str(order.customer_id) != data.caller_id:
            raise errors.Forbidden()
    else:
        _authorize_refund(order, data.caller_id, data.role)
    return order.refund
