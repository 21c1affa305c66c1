"""In-memory gateway used by the payments tests."""

from __future__ import annotations

from typing import Dict, List, Optional

from orders import errors
from payments.gateway import CAPTURED, GatewayPayment, GatewayRefund


class FakeGateway:
    def __init__(self):
        self.payments: Dict[str, GatewayPayment] = {}
        self.intents: List[tuple] = []
        self.refunds: List[tuple] = []
        self.fetch_calls = 0
        self.unavailable = False

    def capture(self, payment_id: str, amount_minor: int, status: str = CAPTURED) -> None:
        self.payments[payment_id] = GatewayPayment(payment_id=payment_id, status=status, amount_minor=amount_minor)

    def create_intent(self, amount_minor: int, currency: str, receipt: str, metadata: Optional[dict] = None) -> str:
        if self.unavailable:
            raise errors.GatewayUnavailable()
        intent_id = f"pi_fake_{len(self.intents) + 1}"
        self.intents.append((intent_id, amount_minor, currency, receipt, metadata or {}))
        return intent_id

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        self.fetch_calls += 1
        if self.unavailable:
            raise errors.GatewayUnavailable()
        return self.payments.get(payment_id) or GatewayPayment(payment_id=payment_id, status="created")

    def refund(self, payment_id: str, amount_minor: int, idempotency_key: Optional[str] = None) -> GatewayRefund:
        if self.unavailable:
            raise errors.GatewayUnavailable()
        self.refunds.append((payment_id, amount_minor, idempotency_key))
        return GatewayRefund(refund_id=f"re_fake_{len(self.refunds)}", status="succeeded", amount_minor=amount_minor)
