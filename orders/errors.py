"""
orders.errors

Error taxonomy for order processing and payment reconciliation.

Every service raises one of these; the HTTP layer renders them through
`orders.handlers.order_exception_handler` using the stable `code`, the
`http_status` and the `retryable` flag. Payment-trust failures always carry a
fixed generic message so nothing about the signature or secret leaks.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class OrderError(Exception):
    code = "order_error"
    http_status = 400
    retryable = False
    default_message = "Order request failed."

    def __init__(self, message: Optional[str] = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context: Dict[str, Any] = context
        super().__init__(self.message)

    def as_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "retryable": self.retryable}


class ValidationError(OrderError):
    code = "validation_error"
    default_message = "Request failed validation."


class NotFound(OrderError):
    code = "not_found"
    http_status = 404
    default_message = "Order not found."


class Forbidden(OrderError):
    code = "forbidden"
    http_status = 403
    default_message = "Not authorized for this order."


class ItemUnavailable(OrderError):
    code = "item_unavailable"
    http_status = 409
    default_message = "An item in this order is not available."


class MixedVendorOrder(OrderError):
    code = "mixed_vendor_order"
    default_message = "All items in an order must come from the same vendor."


class InvalidTransition(OrderError):
    code = "invalid_transition"
    http_status = 409
    default_message = "Order cannot move to that status."


class SignatureMismatch(OrderError):
    code = "signature_mismatch"
    default_message = "Payment could not be verified."


class PaymentNotCaptured(OrderError):
    code = "payment_not_captured"
    http_status = 402
    default_message = "Payment could not be verified."


class GatewayError(OrderError):
    """The gateway answered but rejected the request."""

    code = "gateway_error"
    http_status = 502
    default_message = "Payment gateway rejected the request."


class GatewayUnavailable(GatewayError):
    code = "gateway_unavailable"
    http_status = 503
    retryable = True
    default_message = "Payment gateway is unavailable, please retry."


class Conflict(OrderError):
    code = "conflict"
    http_status = 409
    retryable = True
    default_message = "Order was updated concurrently, refetch and retry."
