"""
payments.views

HTTP surface for payment reconciliation.

- POST /api/payments/initiate/          customer starts an online payment
- POST /api/payments/verify/            checkout callback (signature + gateway check)
- POST /api/payments/refund/            vendor/admin processes a refund
- GET  /api/payments/refund/<id>/       refund status
- GET  /api/payments/<id>/              payment details (stored + gateway view)
- POST /api/payments/stripe/webhook/    Stripe events (signed, csrf-exempt)

ENV VARS
- STRIPE_WEBHOOK_SECRET (required for the webhook): Stripe signing secret (whsec_...)

======== CHANGE LOG ========
2026-10-18
- ADD: payment details view.  # CHANGED:
- FIX: only a canceled intent marks the payment failed; declined attempts stay pending.  # CHANGED:
- FIX: a capture on a cancelled order is recorded (and queued for refund), not dropped.  # CHANGED:

2026-09-02
- ADD: Stripe webhook drives the same confirmation path as /verify/.
- ADD: payment_intent.payment_failed marks a still-pending payment failed.

2026-08-21
- ADD: initiate/verify/refund DRF views.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from rest_framework import serializers
from rest_framework.views import APIView

from orders import errors, refunds
from orders.models import Order
from orders.pricing import to_minor_units
from orders.serializers import OrderSerializer
from orders.views import ok as ok_response
from payments import reconciler
from payments.signatures import mask

log = logging.getLogger("foodmarket")

WEBHOOK_VER = "stripe-webhook.v2026-10-18"
INTENT_CANCELED = "canceled"


# ---------------- request serializers ----------------

class InitiateSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()


class VerifySerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    gateway_payment_id = serializers.CharField()
    signature = serializers.CharField(write_only=True)


class RefundSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, default=None)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


# ---------------- DRF views ----------------

class InitiatePaymentView(APIView):
    def post(self, request):
        ser = InitiateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        if request.user.role != "customer":
            raise errors.Forbidden("Only customers can pay for orders.")
        data = reconciler.initiate_payment(request.user.caller_id, ser.validated_data["order_id"])
        data["publishable_key"] = getattr(settings, "STRIPE_PUBLISHABLE_KEY", "")
        return ok_response(data)


class VerifyPaymentView(APIView):
    def post(self, request):
        ser = VerifySerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        if request.user.role != "customer":
            raise errors.Forbidden("Only customers can verify payments.")
        order = reconciler.verify_payment(
            request.user.caller_id,
            ser.validated_data["order_id"],
            ser.validated_data["gateway_payment_id"],
            ser.validated_data["signature"],
        )
        return ok_response(OrderSerializer(order).data)


class ProcessRefundView(APIView):
    def post(self, request):
        ser = RefundSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record = refunds.process_refund(
            request.user.caller_id,
            request.user.role,
            ser.validated_data["order_id"],
            amount=ser.validated_data["amount"],
            reason=ser.validated_data["reason"],
        )
        return ok_response(record.as_dict())


class RefundStatusView(APIView):
    def get(self, request, order_id):
        record = refunds.refund_status(request.user.caller_id, request.user.role, order_id)
        return ok_response(record.as_dict())


class PaymentDetailsView(APIView):
    def get(self, request, order_id):
        return ok_response(reconciler.payment_details(request.user.caller_id, request.user.role, order_id))


# ---------------- Stripe webhook ----------------

def _json_response(
    ok: bool,
    data: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
    status: int = 200,
) -> JsonResponse:
    return JsonResponse(
        {"ok": bool(ok), "ver": WEBHOOK_VER, "data": data or {}, "error": error or {}},
        status=status,
    )


def _get_stripe_webhook_secret() -> str:
    secret = (getattr(settings, "STRIPE_WEBHOOK_SECRET", "") or "").strip()
    if not secret:
        raise RuntimeError("Missing STRIPE_WEBHOOK_SECRET env var.")
    return secret


def _safe_str(val: Any) -> str:
    try:
        return str(val)
    except Exception:
        return ""


def _to_plain_dict(obj: Any) -> Dict[str, Any]:
    fn = getattr(obj, "to_dict", None)
    if callable(fn):
        return fn()
    try:
        return dict(obj)
    except (TypeError, ValueError):
        return {}


def _order_for_intent(intent: Dict[str, Any]) -> Optional[Order]:
    """Match by metadata.order_id first, then by the stored intent id."""
    intent_id = _safe_str(intent.get("id"))
    order_id = _safe_str((intent.get("metadata") or {}).get("order_id"))
    qs = Order.objects.all()
    if order_id.isdigit():
        order = qs.filter(pk=int(order_id)).first()
        if order and (not order.payment_intent_id or order.payment_intent_id == intent_id):
            return order
    if intent_id:
        return qs.filter(payment_intent_id=intent_id).first()
    return None


def _handle_intent_succeeded(intent: Dict[str, Any]) -> Dict[str, Any]:
    intent_id = _safe_str(intent.get("id"))
    order = _order_for_intent(intent)
    if order is None:
        log.warning("[payments][webhook] no order for intent=%s", mask(intent_id))
        return {"event": "payment_intent.succeeded", "matched": False}

    received = intent.get("amount_received")
    expected = to_minor_units(order.total)
    if isinstance(received, int) and received != expected:
        log.warning(
            "[payments][webhook] amount mismatch order=%s received=%s expected=%s",
            order.order_number, received, expected,
        )
        return {"event": "payment_intent.succeeded", "matched": True, "confirmed": False}

    order = reconciler.confirm_payment(order.pk, intent_id)
    return {
        "event": "payment_intent.succeeded",
        "matched": True,
        "confirmed": True,
        "order_number": order.order_number,
        "order_status": order.status,
        "payment_status": order.payment_status,
        "refund_status": order.refund_status,
    }


def _handle_intent_failed(event_type: str, intent: Dict[str, Any]) -> Dict[str, Any]:
    order = _order_for_intent(intent)
    if order is None:
        return {"event": event_type, "matched": False}

    intent_status = _safe_str(intent.get("status"))
    reason = _safe_str(((intent.get("last_payment_error") or {}).get("code")) or intent.get("cancellation_reason") or "")
    if intent_status != INTENT_CANCELED:
        # Declined attempt; the intent is still open and the customer may retry.
        log.info(
            "[payments][webhook] attempt failed order=%s intent_status=%s reason=%s",
            order.order_number, intent_status or "-", reason or "-",
        )
        return {"event": event_type, "matched": True, "marked_failed": False, "order_number": order.order_number}

    marked = reconciler.mark_payment_failed(order.pk, reason)
    return {
        "event": event_type,
        "matched": True,
        "marked_failed": marked is not None,
        "order_number": order.order_number,
    }


@csrf_exempt
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Stripe webhook receiver (POST only).
    Verifies Stripe signature (required).
    """
    if request.method != "POST":
        return _json_response(False, error={"code": "method_not_allowed", "message": "POST required."}, status=405)

    try:
        secret = _get_stripe_webhook_secret()
    except RuntimeError as e:
        log.error("[payments][webhook] misconfigured: %s", _safe_str(e))
        return _json_response(False, error={"code": "misconfigured", "message": "Webhook not configured."}, status=500)

    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    if not sig_header:
        return _json_response(
            False,
            error={"code": "missing_signature", "message": "Missing Stripe-Signature header."},
            status=400,
        )

    try:
        event = stripe.Webhook.construct_event(payload=request.body, sig_header=sig_header, secret=secret)
    except ValueError:
        return _json_response(False, error={"code": "invalid_payload", "message": "Invalid JSON payload."}, status=400)
    except stripe.SignatureVerificationError:
        return _json_response(False, error={"code": "bad_signature", "message": "Signature verification failed."}, status=400)

    event = _to_plain_dict(event)
    event_type = _safe_str(event.get("type"))
    intent = (event.get("data") or {}).get("object") or {}
    log.info("[payments][webhook] received type=%s id=%s", event_type, _safe_str(event.get("id")))

    try:
        if event_type == "payment_intent.succeeded":
            return _json_response(True, data=_handle_intent_succeeded(intent))
        if event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
            return _json_response(True, data=_handle_intent_failed(event_type, intent))
        return _json_response(True, data={"event": event_type, "ignored": True})
    except errors.OrderError as e:
        log.warning("[payments][webhook] handler error type=%s code=%s", event_type, e.code)
        # Stripe retries on 5xx.
        return _json_response(
            False,
            error={"code": e.code, "message": e.message, "event": event_type},
            status=503 if e.retryable else 200,
        )
