"""
orders.handlers

DRF EXCEPTION_HANDLER. Renders every failure in one stable envelope:

    {"ok": false, "ver": "...", "error": {"code", "message", "retryable"}}

Domain errors (orders.errors.OrderError) carry their own status/code; DRF's
own exceptions (auth, parse, method) are folded into the same shape.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from orders.errors import OrderError

log = logging.getLogger("foodmarket")

API_VER = "foodmarket.v1.2-2026-09-02"


def error_response(code: str, message: str, status: int, retryable: bool = False) -> Response:
    return Response(
        {"ok": False, "ver": API_VER, "error": {"code": code, "message": message, "retryable": retryable}},
        status=status,
    )


def order_exception_handler(exc, context):
    if isinstance(exc, OrderError):
        view = context.get("view")
        log.info(
            "[orders][api] %s -> %s (%s)",
            view.__class__.__name__ if view else "?", exc.code, exc.http_status,
        )
        resp = error_response(exc.code, exc.message, exc.http_status, exc.retryable)
        if exc.retryable:
            resp["Retry-After"] = "1"
        return resp

    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = getattr(exc, "detail", None)
    code = "error"
    message = str(detail) if detail is not None else "Request failed."
    if hasattr(exc, "get_codes"):
        codes = exc.get_codes()
        if isinstance(codes, str):
            code = codes
        elif isinstance(codes, dict):
            code = "validation_error"
            message = "; ".join(
                f"{field}: {' '.join(str(m) for m in (msgs if isinstance(msgs, list) else [msgs]))}"
                for field, msgs in detail.items()
            )
        elif isinstance(codes, list):
            code = "validation_error"
            message = " ".join(str(m) for m in detail)
    return error_response(code, message, response.status_code)
