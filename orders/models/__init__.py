# -*- coding: utf-8 -*-
"""
Orders - Models package entrypoint.

This app uses a models/ package (not a single models.py); Django registers
models when these modules are imported.
"""

from .order import (
    IMMUTABLE_FIELDS,
    Order,
    OrderLine,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PriceSnapshot,
    PaymentRecord,
    RefundRecord,
    RefundStatus,
)
from .sequence import Sequence
from .timeline import AppendOnlyError, TimelineEntry, TrackingEntry

__all__ = [
    "IMMUTABLE_FIELDS",
    "Order",
    "OrderLine",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "PriceSnapshot",
    "PaymentRecord",
    "RefundRecord",
    "RefundStatus",
    "Sequence",
    "AppendOnlyError",
    "TimelineEntry",
    "TrackingEntry",
]
