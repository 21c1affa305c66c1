from django.test import SimpleTestCase

from orders.models import OrderStatus
from orders.transitions import (
    CANCELLABLE_STATES,
    ROLE_ADMIN,
    ROLE_CUSTOMER,
    ROLE_PAYMENT,
    ROLE_VENDOR,
    TERMINAL_STATES,
    TRANSITIONS,
    is_edge,
    payment_may_move,
    role_may,
)


class TransitionTableTests(SimpleTestCase):
    def test_every_status_has_a_row(self):
        self.assertEqual(set(TRANSITIONS), set(OrderStatus.values))

    def test_terminal_and_cancellable_states(self):
        self.assertEqual(TERMINAL_STATES, {"delivered", "cancelled"})
        self.assertEqual(CANCELLABLE_STATES, {"pending", "confirmed"})

    def test_happy_path_edges(self):
        path = ["pending", "confirmed", "preparing", "ready", "out_for_delivery", "delivered"]
        for a, b in zip(path, path[1:]):
            self.assertTrue(is_edge(a, b), f"{a} -> {b}")
            self.assertTrue(role_may(ROLE_VENDOR, a, b))
            self.assertTrue(role_may(ROLE_ADMIN, a, b))
            self.assertFalse(role_may(ROLE_CUSTOMER, a, b))

    def test_no_skips_or_backwards_moves(self):
        self.assertFalse(is_edge("pending", "preparing"))
        self.assertFalse(is_edge("ready", "confirmed"))
        self.assertFalse(is_edge("preparing", "cancelled"))
        self.assertFalse(is_edge("delivered", "cancelled"))

    def test_only_customer_cancels_and_payment_only_confirms(self):
        self.assertEqual(TRANSITIONS["pending"]["cancelled"], {ROLE_CUSTOMER})
        self.assertTrue(role_may(ROLE_PAYMENT, "pending", "confirmed"))
        self.assertFalse(role_may(ROLE_PAYMENT, "confirmed", "preparing"))

    def test_enum_members_and_strings_agree(self):
        self.assertTrue(is_edge(OrderStatus.PENDING, OrderStatus.CONFIRMED))
        self.assertTrue(role_may(ROLE_VENDOR, OrderStatus.READY, "out_for_delivery"))

    def test_payment_status_moves(self):
        self.assertTrue(payment_may_move("pending", "completed"))
        self.assertTrue(payment_may_move("completed", "refunded"))
        self.assertFalse(payment_may_move("failed", "completed"))
        self.assertFalse(payment_may_move("refunded", "completed"))
