from decimal import Decimal
from types import SimpleNamespace

from django.test import TestCase, override_settings

from orders import errors, lifecycle, refunds
from orders.models import Order
from orders.tests.helpers import ADMIN, CUSTOMER, OTHER_CUSTOMER, VENDOR_OWNER, make_item, make_vendor, place_order, walk
from payments.gateway import GatewayRefund


class FakeRefundGateway:
    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    def refund(self, payment_id, amount_minor, idempotency_key=None):
        self.calls.append((payment_id, amount_minor, idempotency_key))
        if self.fail_with is not None:
            raise self.fail_with
        return GatewayRefund(refund_id="re_test_1", status="succeeded", amount_minor=amount_minor)


def _mark_paid(order):
    Order.objects.filter(pk=order.pk).update(payment_status="completed", payment_gateway_id="pi_test_1")
    return Order.objects.get(pk=order.pk)


def _entries(*statuses):
    return [SimpleNamespace(status=s) for s in statuses]


class StatusBeforeCancellationTests(TestCase):
    def test_walks_back_from_last_cancellation(self):
        self.assertEqual(refunds.status_before_cancellation(_entries("pending", "cancelled")), "pending")
        self.assertEqual(
            refunds.status_before_cancellation(_entries("pending", "confirmed", "preparing", "cancelled")),
            "preparing",
        )

    def test_no_cancellation(self):
        self.assertIsNone(refunds.status_before_cancellation(_entries("pending", "confirmed")))
        self.assertIsNone(refunds.status_before_cancellation([]))


@override_settings(ORDER_TAX_RATE=Decimal("0.05"))
class RefundPolicyTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor, price="280.00")
        self.order = _mark_paid(place_order(self.item, quantity=2))

    def test_cancel_from_pending_records_full_refund(self):
        order = lifecycle.cancel_order(CUSTOMER, self.order.pk)
        self.assertEqual(order.refund_status, "requested")
        self.assertEqual(order.refund_amount, Decimal("618.00"))

    def test_cancel_without_reason_uses_default_refund_reason(self):
        order = lifecycle.cancel_order(CUSTOMER, self.order.pk)
        self.assertEqual(order.refund_reason, "Order cancelled")
        self.assertEqual(order.timeline[-1].note, "Cancelled by customer")

    def test_cancel_from_confirmed_records_full_refund(self):
        walk(self.order, "confirmed")
        order = lifecycle.cancel_order(CUSTOMER, self.order.pk, "Too slow")
        self.assertEqual(order.refund_amount, Decimal("618.00"))
        self.assertEqual(order.refund_reason, "Too slow")

    def test_cancellation_after_preparing_refunds_half(self):
        order = walk(self.order, "confirmed", "preparing")
        order.append_timeline("cancelled", "Kitchen issue")
        Order.objects.filter(pk=order.pk).update(status="cancelled")
        order = Order.objects.get(pk=order.pk)
        self.assertEqual(refunds.default_refund_policy(order), Decimal("309.00"))

    def test_unpaid_order_is_not_eligible(self):
        order = place_order(self.item, payment_method="cod")
        order = lifecycle.cancel_order(CUSTOMER, order.pk)
        self.assertEqual(refunds.default_refund_policy(order), Decimal("0.00"))
        self.assertEqual(order.refund_status, "none")

    @override_settings(ORDER_REFUND_POLICY="orders.tests.test_refunds.flat_ten_policy")
    def test_policy_is_pluggable(self):
        order = lifecycle.cancel_order(CUSTOMER, self.order.pk)
        self.assertEqual(order.refund_amount, Decimal("10.00"))


def flat_ten_policy(order):
    return Decimal("10.00") if refunds.is_refund_eligible(order) else Decimal("0.00")


@override_settings(ORDER_TAX_RATE=Decimal("0.05"))
class ProcessRefundTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor, price="280.00")
        order = _mark_paid(place_order(self.item, quantity=2))
        self.order = lifecycle.cancel_order(CUSTOMER, order.pk)

    def test_vendor_processes_refund(self):
        gateway = FakeRefundGateway()
        record = refunds.process_refund(VENDOR_OWNER, "vendor", self.order.pk, gateway=gateway)
        self.assertEqual(record.status, "processed")
        self.assertEqual(record.payment_status, "refunded")
        self.assertEqual(record.amount, Decimal("618.00"))
        self.assertEqual(record.gateway_refund_id, "re_test_1")
        self.assertEqual(gateway.calls, [("pi_test_1", 61800, f"refund:{self.order.order_number}:61800")])

    def test_processed_refund_returns_as_is(self):
        gateway = FakeRefundGateway()
        refunds.process_refund(ADMIN, "admin", self.order.pk, gateway=gateway)
        record = refunds.process_refund(ADMIN, "admin", self.order.pk, gateway=gateway)
        self.assertEqual(record.status, "processed")
        self.assertEqual(len(gateway.calls), 1)

    def test_gateway_outage_leaves_refund_requested_and_retry_reuses_key(self):
        down = FakeRefundGateway(fail_with=errors.GatewayUnavailable())
        with self.assertRaises(errors.GatewayUnavailable):
            refunds.process_refund(VENDOR_OWNER, "vendor", self.order.pk, gateway=down)
        order = Order.objects.get(pk=self.order.pk)
        self.assertEqual(order.refund_status, "requested")
        self.assertEqual(order.payment_status, "completed")

        up = FakeRefundGateway()
        record = refunds.process_refund(VENDOR_OWNER, "vendor", self.order.pk, gateway=up)
        self.assertEqual(record.status, "processed")
        self.assertEqual(down.calls[0][2], up.calls[0][2])

    def test_customer_cannot_process_refund(self):
        with self.assertRaises(errors.Forbidden):
            refunds.process_refund(CUSTOMER, "customer", self.order.pk, gateway=FakeRefundGateway())

    def test_other_vendor_cannot_process_refund(self):
        make_vendor(owner_id="vend-2")
        with self.assertRaises(errors.Forbidden):
            refunds.process_refund("vend-2", "vendor", self.order.pk, gateway=FakeRefundGateway())

    def test_ineligible_order_rejected(self):
        live = _mark_paid(place_order(self.item))
        with self.assertRaises(errors.InvalidTransition):
            refunds.process_refund(ADMIN, "admin", live.pk, gateway=FakeRefundGateway())

    def test_refund_status_visibility(self):
        self.assertEqual(refunds.refund_status(CUSTOMER, "customer", self.order.pk).status, "requested")
        self.assertEqual(refunds.refund_status(VENDOR_OWNER, "vendor", self.order.pk).amount, Decimal("618.00"))
        with self.assertRaises(errors.Forbidden):
            refunds.refund_status(OTHER_CUSTOMER, "customer", self.order.pk)
