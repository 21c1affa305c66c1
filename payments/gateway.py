"""
payments.gateway

Payment gateway collaborator.

Order code only sees three calls:
- create_intent(amount_minor, currency, receipt) -> intent id
- fetch_payment(payment_id) -> GatewayPayment (status normalized to "captured", ...)
- refund(payment_id, amount_minor, idempotency_key) -> GatewayRefund

StripeGateway implements them on PaymentIntents. Network trouble
(connection errors, timeouts, rate limiting, 5xx) is raised as
GatewayUnavailable so callers can retry; anything Stripe rejects outright is
GatewayError. `get_gateway()` builds whatever PAYMENT_GATEWAY_CLASS names.

ENV VARS
- STRIPE_SECRET_KEY        (required for StripeGateway)
- PAYMENT_GATEWAY_TIMEOUT  (seconds, default 10)

========= CHANGE LOG =========
2026-09-02 • ADD: idempotency_key on refunds so retries never double-refund.  # CHANGED:
2026-08-21 • ADD: StripeGateway (PaymentIntent create/retrieve, Refund create).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import stripe
from django.conf import settings
from django.utils.module_loading import import_string

from orders import errors

log = logging.getLogger("foodmarket")

CAPTURED = "captured"

# Stripe PaymentIntent.status -> gateway-neutral status.
_STRIPE_PAYMENT_STATUS: Dict[str, str] = {
    "succeeded": CAPTURED,
    "requires_capture": "authorized",
    "processing": "pending",
    "requires_payment_method": "created",
    "requires_confirmation": "created",
    "requires_action": "created",
    "canceled": "failed",
}


@dataclass(frozen=True)
class GatewayPayment:
    payment_id: str
    status: str
    amount_minor: Optional[int] = None
    currency: str = ""


@dataclass(frozen=True)
class GatewayRefund:
    refund_id: str
    status: str
    amount_minor: int


def _safe_str(val) -> str:
    try:
        return str(val)
    except Exception:
        return ""


class StripeGateway:
    _http_client_configured = False

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[int] = None):
        self.api_key = (api_key or getattr(settings, "STRIPE_SECRET_KEY", "") or "").strip()
        if not self.api_key:
            raise RuntimeError("Missing STRIPE_SECRET_KEY env var.")
        self.timeout = timeout or getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 10)
        if not StripeGateway._http_client_configured:
            # Bounded timeout for every Stripe request made by this process.
            stripe.default_http_client = stripe.new_default_http_client(timeout=self.timeout)
            StripeGateway._http_client_configured = True

    def create_intent(self, amount_minor: int, currency: str, receipt: str, metadata: Optional[dict] = None) -> str:
        intent = self._call(
            stripe.PaymentIntent.create,
            amount=amount_minor,
            currency=currency,
            description=f"Order {receipt}",
            metadata={"receipt": receipt, **(metadata or {})},
            api_key=self.api_key,
        )
        return _safe_str(intent["id"])

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        intent = self._call(stripe.PaymentIntent.retrieve, payment_id, api_key=self.api_key)
        raw_status = _safe_str(intent.get("status"))
        amount = intent.get("amount_received") or intent.get("amount")
        return GatewayPayment(
            payment_id=_safe_str(intent["id"]),
            status=_STRIPE_PAYMENT_STATUS.get(raw_status, raw_status or "unknown"),
            amount_minor=amount if isinstance(amount, int) else None,
            currency=_safe_str(intent.get("currency") or ""),
        )

    def refund(self, payment_id: str, amount_minor: int, idempotency_key: Optional[str] = None) -> GatewayRefund:
        kwargs = {"payment_intent": payment_id, "amount": amount_minor, "api_key": self.api_key}
        if idempotency_key:
            kwargs["idempotency_key"] = idempotency_key
        refund = self._call(stripe.Refund.create, **kwargs)
        status = _safe_str(refund.get("status"))
        if status in ("failed", "canceled"):
            raise errors.GatewayError("Refund was declined by the payment gateway.", refund_status=status)
        return GatewayRefund(
            refund_id=_safe_str(refund["id"]),
            status=status,
            amount_minor=refund.get("amount") or amount_minor,
        )

    @staticmethod
    def _call(fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            log.warning("[payments][stripe] gateway unreachable: %s", e.__class__.__name__)
            raise errors.GatewayUnavailable() from e
        except stripe.APIError as e:
            log.warning("[payments][stripe] gateway server error: %s", e.__class__.__name__)
            raise errors.GatewayUnavailable() from e
        except stripe.StripeError as e:
            log.warning(
                "[payments][stripe] request rejected: %s code=%s",
                e.__class__.__name__, getattr(e, "code", None),
            )
            raise errors.GatewayError() from e


def get_gateway():
    """Build the configured gateway (PAYMENT_GATEWAY_CLASS dotted path)."""
    gateway_cls = import_string(settings.PAYMENT_GATEWAY_CLASS)
    return gateway_cls()
