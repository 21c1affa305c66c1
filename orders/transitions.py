"""
orders.transitions

The order state machine as data.

TRANSITIONS maps from-state → {to-state: roles allowed to drive that edge}.
Anything not listed here is not a legal move. `payment` is the internal role
used by the payment confirmation path; it is never accepted from callers.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Mapping

from orders.models import OrderStatus

ROLE_CUSTOMER = "customer"
ROLE_VENDOR = "vendor"
ROLE_ADMIN = "admin"
ROLE_PAYMENT = "payment"

CALLER_ROLES: FrozenSet[str] = frozenset({ROLE_CUSTOMER, ROLE_VENDOR, ROLE_ADMIN})

_KITCHEN = frozenset({ROLE_VENDOR, ROLE_ADMIN})

TRANSITIONS: Mapping[str, Mapping[str, FrozenSet[str]]] = {
    OrderStatus.PENDING.value: {
        OrderStatus.CONFIRMED.value: _KITCHEN | {ROLE_PAYMENT},
        OrderStatus.CANCELLED.value: frozenset({ROLE_CUSTOMER}),
    },
    OrderStatus.CONFIRMED.value: {
        OrderStatus.PREPARING.value: _KITCHEN,
        OrderStatus.CANCELLED.value: frozenset({ROLE_CUSTOMER}),
    },
    OrderStatus.PREPARING.value: {
        OrderStatus.READY.value: _KITCHEN,
    },
    OrderStatus.READY.value: {
        OrderStatus.OUT_FOR_DELIVERY.value: _KITCHEN,
    },
    OrderStatus.OUT_FOR_DELIVERY.value: {
        OrderStatus.DELIVERED.value: _KITCHEN,
    },
    OrderStatus.DELIVERED.value: {},
    OrderStatus.CANCELLED.value: {},
}

TERMINAL_STATES: FrozenSet[str] = frozenset(s for s, edges in TRANSITIONS.items() if not edges)
CANCELLABLE_STATES: FrozenSet[str] = frozenset(
    s for s, edges in TRANSITIONS.items() if OrderStatus.CANCELLED.value in edges
)

# payment.status moves pending → {completed, failed}, completed → refunded.
PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"completed", "failed"}),
    "completed": frozenset({"refunded"}),
    "failed": frozenset(),
    "refunded": frozenset(),
}


def is_edge(from_state: str, to_state: str) -> bool:
    return str(to_state) in TRANSITIONS.get(str(from_state), {})


def allowed_roles(from_state: str, to_state: str) -> FrozenSet[str]:
    return TRANSITIONS.get(str(from_state), {}).get(str(to_state), frozenset())


def role_may(role: str, from_state: str, to_state: str) -> bool:
    return role in allowed_roles(from_state, to_state)


def payment_may_move(from_status: str, to_status: str) -> bool:
    return str(to_status) in PAYMENT_TRANSITIONS.get(str(from_status), frozenset())
