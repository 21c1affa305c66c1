"""
payments.reconciler

Reconciles gateway payments with orders.

- initiate_payment(): ask the gateway for an intent covering the order total
- verify_payment(): checkout callback; signature -> gateway status -> confirm
- confirm_payment(): the shared confirmation path (verify + Stripe webhook)
- mark_payment_failed(): webhook path for intents Stripe gave up on
- payment_details(): stored payment/pricing plus the gateway's own view

LOCKED INTENT
- A payment is completed at most once. The pending -> completed move is a
  compare-and-swap on payment_status, so a duplicate verify (or a webhook
  racing a verify) finds nothing to update and returns the stored result.
- The order moves pending -> confirmed with role `payment` in the same
  transaction; if the vendor already confirmed, only the payment record moves.
- Money captured after the customer cancelled is still recorded as completed,
  and the refund policy stamps a refund request in the same transaction.
- Nothing here logs a signature or a secret.

========= CHANGE LOG =========
2026-10-18
- FIX: captures on cancelled orders are recorded and queued for refund.  # CHANGED:
- ADD: payment_details().  # CHANGED:

2026-09-02 • ADD: confirm_payment() shared with the Stripe webhook.
2026-08-21 • ADD: initiate_payment / verify_payment.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from orders import errors, store
from orders.inputs import InitiatePaymentInput, VerifyPaymentInput
from orders.lifecycle import apply_transition, get_order
from orders.models import Order, OrderStatus, PaymentMethod, PaymentStatus
from orders.pricing import to_minor_units
from orders.refunds import REFUND_FIELDS, record_refund
from orders.transitions import ROLE_PAYMENT, is_edge
from payments.gateway import CAPTURED, get_gateway
from payments.signatures import mask, signature_matches

log = logging.getLogger("foodmarket")

CONFIRM_NOTE = "Payment completed successfully"
LATE_PAYMENT_REASON = "Payment received after cancellation"


def _clean(value: Any) -> str:
    return str(value or "").strip()


def _owned_order(order_id, customer_id: str) -> Order:
    order = store.get_order(order_id)
    if str(order.customer_id) != customer_id:
        raise errors.Forbidden()
    return order


def initiate_payment(customer_id, order_id, gateway=None) -> Dict[str, Any]:
    data = InitiatePaymentInput(customer_id=_clean(customer_id), order_id=order_id).validate()
    order = _owned_order(data.order_id, data.customer_id)

    if str(order.payment_method) != PaymentMethod.ONLINE.value:
        raise errors.InvalidTransition("Order is not payable online.")
    if str(order.status) != OrderStatus.PENDING.value or str(order.payment_status) != PaymentStatus.PENDING.value:
        raise errors.InvalidTransition("Order is not awaiting payment.")

    gateway = gateway or get_gateway()
    currency = getattr(settings, "PAYMENT_CURRENCY", "inr")
    amount_minor = to_minor_units(order.total)
    intent_id = gateway.create_intent(
        amount_minor,
        currency,
        order.order_number,
        metadata={"order_id": str(order.pk)},
    )

    with transaction.atomic():
        locked = store.lock_order(order.pk)
        if str(locked.payment_status) != PaymentStatus.PENDING.value:
            raise errors.InvalidTransition("Order is not awaiting payment.")
        locked.payment_intent_id = intent_id
        store.save_guarded(locked, ["payment_intent_id"])

    log.info(
        "[payments][initiate] order=%s intent=%s amount_minor=%s",
        order.order_number, mask(intent_id), amount_minor,
    )
    return {
        "intent_id": intent_id,
        "amount": amount_minor,
        "currency": currency,
        "receipt": order.order_number,
    }


def confirm_payment(order_id, gateway_payment_id: str, signature: str = "") -> Order:
    """
    Record a captured payment and confirm the order. Safe to call repeatedly.
    The caller has already established the payment is genuine.
    """
    with transaction.atomic():
        order = store.lock_order(order_id)
        if str(order.payment_status) == PaymentStatus.COMPLETED.value:
            return order

        swapped = Order.objects.filter(
            pk=order.pk,
            version=order.version,
            payment_status=PaymentStatus.PENDING,
        ).update(
            payment_status=PaymentStatus.COMPLETED,
            payment_gateway_id=gateway_payment_id,
            payment_signature=signature or "",
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if swapped != 1:
            order = store.lock_order(order_id)
            if str(order.payment_status) == PaymentStatus.COMPLETED.value:
                return order
            raise errors.Conflict(order_id=order.pk)

        order.refresh_from_db()
        if is_edge(order.status, OrderStatus.CONFIRMED):
            apply_transition(order, OrderStatus.CONFIRMED, ROLE_PAYMENT, CONFIRM_NOTE)
        elif str(order.status) == OrderStatus.CANCELLED.value and record_refund(order, LATE_PAYMENT_REASON):
            store.save_guarded(order, REFUND_FIELDS)
            log.warning(
                "[payments][confirm] payment captured on cancelled order=%s refund=%s",
                order.order_number, order.refund_amount,
            )

    log.info(
        "[payments][confirm] order=%s payment=%s status=%s",
        order.order_number, mask(gateway_payment_id), order.status,
    )
    return order


def verify_payment(customer_id, order_id, gateway_payment_id, signature, gateway=None) -> Order:
    data = VerifyPaymentInput(
        customer_id=_clean(customer_id),
        order_id=order_id,
        gateway_payment_id=_clean(gateway_payment_id),
        signature=_clean(signature),
    ).validate()
    order = _owned_order(data.order_id, data.customer_id)

    if not signature_matches(order.pk, data.gateway_payment_id, data.signature):
        log.warning(
            "[payments][verify] signature mismatch order=%s sig_len=%s",
            order.order_number, len(data.signature),
        )
        raise errors.SignatureMismatch()

    if str(order.payment_status) == PaymentStatus.COMPLETED.value:
        return order
    if str(order.payment_status) != PaymentStatus.PENDING.value:
        raise errors.InvalidTransition("Order is not awaiting payment.")

    gateway = gateway or get_gateway()
    payment = gateway.fetch_payment(data.gateway_payment_id)
    expected_minor = to_minor_units(order.total)
    if payment.status != CAPTURED or (
        payment.amount_minor is not None and payment.amount_minor != expected_minor
    ):
        log.warning(
            "[payments][verify] not captured order=%s gateway_status=%s amount_minor=%s expected=%s",
            order.order_number, payment.status, payment.amount_minor, expected_minor,
        )
        raise errors.PaymentNotCaptured()

    return confirm_payment(order.pk, data.gateway_payment_id, data.signature)


def mark_payment_failed(order_id, reason: str = "") -> Optional[Order]:
    """
    Pending payment -> failed. Returns None when there was nothing to mark.

    Only for intents that can no longer succeed (Stripe `canceled`); a declined
    attempt leaves the intent open for another try.
    """
    with transaction.atomic():
        order = store.lock_order(order_id)
        if str(order.payment_status) != PaymentStatus.PENDING.value:
            return None
        order.payment_status = PaymentStatus.FAILED
        store.save_guarded(order, ["payment_status"])
    log.info("[payments][failed] order=%s reason=%s", order.order_number, (reason or "-")[:120])
    return order


def payment_details(caller_id, role, order_id, gateway=None) -> Dict[str, Any]:
    """
    What we stored about the order's payment, plus the gateway's view of it.
    The gateway lookup is best-effort: if it fails, `gateway` is None and
    `gateway_error` carries the error code.
    """
    order = get_order(caller_id, role, order_id)
    payment = order.payment
    payment_id = payment.gateway_payment_id or payment.intent_id

    gateway_view: Optional[Dict[str, Any]] = None
    gateway_error = ""
    if payment_id:
        gateway = gateway or get_gateway()
        try:
            fetched = gateway.fetch_payment(payment_id)
        except errors.GatewayError as e:
            log.warning(
                "[payments][details] gateway lookup failed order=%s payment=%s code=%s",
                order.order_number, mask(payment_id), e.code,
            )
            gateway_error = e.code
        else:
            gateway_view = {
                "payment_id": fetched.payment_id,
                "status": fetched.status,
                "amount": fetched.amount_minor,
                "currency": fetched.currency,
            }

    return {
        "order_id": order.pk,
        "order_number": order.order_number,
        "status": order.status,
        "payment": {
            "method": payment.method,
            "status": payment.status,
            "intent_id": payment.intent_id,
            "gateway_payment_id": payment.gateway_payment_id,
            "amount": str(payment.amount),
        },
        "pricing": order.pricing.as_dict(),
        "refund": order.refund.as_dict(),
        "gateway": gateway_view,
        "gateway_error": gateway_error or None,
    }
