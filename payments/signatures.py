"""
payments.signatures

Checkout callback signatures.

The gateway's checkout hands the customer's client a signature computed as
HMAC-SHA256(secret, "{order_id}|{gateway_payment_id}") in hex. We recompute it
with the server-held PAYMENT_SIGNING_SECRET and compare in constant time.
Neither the secret nor either signature is ever logged.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from django.conf import settings


def _signing_secret() -> str:
    secret = (getattr(settings, "PAYMENT_SIGNING_SECRET", "") or "").strip()
    if not secret:
        raise RuntimeError("Missing PAYMENT_SIGNING_SECRET env var.")
    return secret


def expected_signature(order_id, gateway_payment_id: str, secret: Optional[str] = None) -> str:
    message = f"{order_id}|{gateway_payment_id}".encode("utf-8")
    key = (secret or _signing_secret()).encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def signature_matches(order_id, gateway_payment_id: str, signature: str, secret: Optional[str] = None) -> bool:
    provided = (signature or "").strip().lower()
    if not provided:
        return False
    expected = expected_signature(order_id, gateway_payment_id, secret=secret)
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def mask(value: str) -> str:
    """Safe display helper for ids in logs; never use on secrets."""
    v = (value or "").strip()
    if len(v) <= 8:
        return "***"
    return f"{v[:4]}…{v[-4:]}"
