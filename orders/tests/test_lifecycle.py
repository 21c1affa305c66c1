from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase, override_settings

from catalog.models import FoodItem, Vendor
from orders import errors, lifecycle, store
from orders.models import AppendOnlyError, Order, Sequence, TimelineEntry
from orders.tests.helpers import (
    ADDRESS,
    ADMIN,
    CUSTOMER,
    OTHER_CUSTOMER,
    VENDOR_OWNER,
    make_item,
    make_vendor,
    place_order,
    walk,
)


@override_settings(ORDER_TAX_RATE=Decimal("0.05"), ORDER_NUMBER_PREFIX="ORD")
class CreateOrderTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor)

    def test_new_order_is_pending_with_one_timeline_entry(self):
        order = place_order(self.item)
        self.assertEqual(order.status, "pending")
        self.assertEqual(order.payment_status, "pending")
        timeline = order.timeline
        self.assertEqual(len(timeline), 1)
        self.assertEqual(timeline[0].status, "pending")
        self.assertEqual(timeline[0].note, "Order placed successfully")

    def test_order_numbers_are_sequential_and_unique(self):
        a = place_order(self.item)
        b = place_order(self.item)
        self.assertTrue(a.order_number.startswith("ORD"))
        self.assertNotEqual(a.order_number, b.order_number)
        self.assertEqual(int(b.order_number[3:]), int(a.order_number[3:]) + 1)

    def test_counter_behind_existing_numbers_recovers(self):
        place_order(self.item)
        second = place_order(self.item)
        Sequence.objects.filter(name="order_number").update(value=0)

        third = place_order(self.item)
        self.assertEqual(int(third.order_number[3:]), int(second.order_number[3:]) + 1)
        fourth = place_order(self.item)
        self.assertEqual(int(fourth.order_number[3:]), int(third.order_number[3:]) + 1)
        self.assertEqual(Order.objects.count(), 4)

    def test_collision_that_never_clears_is_a_conflict(self):
        first = place_order(self.item)
        with mock.patch("orders.lifecycle._order_number", return_value=first.order_number):
            with self.assertRaises(errors.Conflict):
                place_order(self.item)
        self.assertEqual(Order.objects.count(), 1)

    def test_invalid_input_writes_nothing(self):
        with self.assertRaises(errors.ValidationError):
            lifecycle.create_order(CUSTOMER, [{"food_item_id": self.item.pk, "quantity": 0}], dict(ADDRESS), "cod")
        with self.assertRaises(errors.ValidationError):
            lifecycle.create_order(CUSTOMER, [], dict(ADDRESS), "cod")
        with self.assertRaises(errors.ValidationError):
            lifecycle.create_order(CUSTOMER, [{"food_item_id": self.item.pk, "quantity": 1}], {"city": "Pune"}, "cod")
        with self.assertRaises(errors.ValidationError):
            lifecycle.create_order(CUSTOMER, [{"food_item_id": self.item.pk, "quantity": 1}], dict(ADDRESS), "wallet")
        with self.assertRaises(errors.ValidationError):
            lifecycle.create_order(CUSTOMER, 5, dict(ADDRESS), "cod")
        self.assertEqual(Order.objects.count(), 0)

    def test_emails_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = place_order(self.item)
        recipients = sorted(m.to[0] for m in mail.outbox)
        self.assertEqual(recipients, ["asha@example.com", "vend-1@example.com"])
        self.assertIn(order.order_number, mail.outbox[0].subject)


class AdvanceStatusTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor)
        self.order = place_order(self.item, payment_method="cod")

    def test_vendor_walks_order_to_delivered(self):
        order = walk(self.order, "confirmed", "preparing", "ready", "out_for_delivery", "delivered")
        self.assertEqual(order.status, "delivered")
        self.assertIsNotNone(order.actual_delivery_time)
        statuses = [e.status for e in order.timeline]
        self.assertEqual(statuses, ["pending", "confirmed", "preparing", "ready", "out_for_delivery", "delivered"])
        self.assertEqual(statuses[-1], order.status)

    def test_delivered_applies_stats_once(self):
        order = walk(self.order, "confirmed", "preparing", "ready", "out_for_delivery", "delivered")
        vendor = Vendor.objects.get(pk=self.vendor.pk)
        item = FoodItem.objects.get(pk=self.item.pk)
        self.assertEqual(vendor.total_orders, 1)
        self.assertEqual(vendor.total_earnings, order.total)
        self.assertEqual(item.total_orders, 2)
        self.assertTrue(Order.objects.get(pk=order.pk).stats_applied)

        with self.assertRaises(errors.InvalidTransition):
            lifecycle.advance_status(VENDOR_OWNER, "vendor", order.pk, "delivered")
        self.assertEqual(Vendor.objects.get(pk=self.vendor.pk).total_orders, 1)

    def test_skipping_a_state_is_invalid(self):
        with self.assertRaises(errors.InvalidTransition):
            lifecycle.advance_status(VENDOR_OWNER, "vendor", self.order.pk, "preparing")

    def test_customer_cannot_drive_kitchen_edges(self):
        with self.assertRaises(errors.Forbidden):
            lifecycle.advance_status(CUSTOMER, "customer", self.order.pk, "confirmed")

    def test_vendor_cannot_cancel(self):
        with self.assertRaises(errors.Forbidden):
            lifecycle.advance_status(VENDOR_OWNER, "vendor", self.order.pk, "cancelled")

    def test_other_vendor_is_forbidden(self):
        make_vendor(owner_id="vend-2")
        with self.assertRaises(errors.Forbidden):
            lifecycle.advance_status("vend-2", "vendor", self.order.pk, "confirmed")

    def test_admin_can_advance(self):
        order = lifecycle.advance_status(ADMIN, "admin", self.order.pk, "confirmed", "Manual confirm")
        self.assertEqual(order.status, "confirmed")
        self.assertEqual(order.timeline[-1].note, "Manual confirm")

    def test_payment_role_is_not_accepted_from_callers(self):
        with self.assertRaises(errors.ValidationError):
            lifecycle.advance_status(ADMIN, "payment", self.order.pk, "confirmed")

    def test_unknown_order_is_not_found(self):
        with self.assertRaises(errors.NotFound):
            lifecycle.advance_status(VENDOR_OWNER, "vendor", 987654, "confirmed")

    def test_ownership_checked_before_edge(self):
        with self.assertRaises(errors.Forbidden):
            lifecycle.advance_status(OTHER_CUSTOMER, "customer", self.order.pk, "delivered")

    def test_stale_version_raises_conflict_and_rolls_back(self):
        stale = Order.objects.get(pk=self.order.pk)
        lifecycle.advance_status(VENDOR_OWNER, "vendor", self.order.pk, "confirmed")
        stale.status = "confirmed"
        with self.assertRaises(errors.Conflict):
            store.save_guarded(stale, ["status"])

    def test_conflict_inside_transition_leaves_no_timeline_entry(self):
        with mock.patch("orders.lifecycle.store.save_guarded", side_effect=errors.Conflict()):
            with self.assertRaises(errors.Conflict):
                lifecycle.advance_status(VENDOR_OWNER, "vendor", self.order.pk, "confirmed")
        self.assertEqual(Order.objects.get(pk=self.order.pk).status, "pending")
        self.assertEqual(TimelineEntry.objects.filter(order=self.order).count(), 1)


class CancelOrderTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor)
        self.order = place_order(self.item, payment_method="cod")

    def test_customer_cancels_pending_order(self):
        order = lifecycle.cancel_order(CUSTOMER, self.order.pk, "Changed my mind")
        self.assertEqual(order.status, "cancelled")
        self.assertEqual(order.timeline[-1].note, "Changed my mind")
        # unpaid COD order: nothing to refund
        self.assertEqual(order.refund_status, "none")

    def test_cancel_after_preparing_is_invalid(self):
        walk(self.order, "confirmed", "preparing")
        with self.assertRaises(errors.InvalidTransition):
            lifecycle.cancel_order(CUSTOMER, self.order.pk)

    def test_only_owner_can_cancel(self):
        with self.assertRaises(errors.Forbidden):
            lifecycle.cancel_order(OTHER_CUSTOMER, self.order.pk)


class TimelineAppendOnlyTests(TestCase):
    def test_entries_refuse_update_and_delete(self):
        order = place_order(make_item(make_vendor()))
        entry = order.timeline[0]
        entry.note = "edited"
        with self.assertRaises(AppendOnlyError):
            entry.save()
        with self.assertRaises(AppendOnlyError):
            entry.delete()
        with self.assertRaises(AppendOnlyError):
            TimelineEntry.objects.filter(order=order).update(note="x")
        with self.assertRaises(AppendOnlyError):
            order.delete()

    def test_immutable_fields_rejected_by_guarded_save(self):
        order = place_order(make_item(make_vendor()))
        order.total = Decimal("1.00")
        with self.assertRaises(ValueError):
            store.save_guarded(order, ["total"])


class ReadAndTrackingTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor)
        self.order = place_order(self.item, payment_method="cod")

    def test_get_order_access(self):
        self.assertEqual(lifecycle.get_order(CUSTOMER, "customer", self.order.pk).pk, self.order.pk)
        self.assertEqual(lifecycle.get_order(VENDOR_OWNER, "vendor", self.order.pk).pk, self.order.pk)
        self.assertEqual(lifecycle.get_order(ADMIN, "admin", self.order.pk).pk, self.order.pk)
        with self.assertRaises(errors.Forbidden):
            lifecycle.get_order(OTHER_CUSTOMER, "customer", self.order.pk)

    def test_tracking_update_and_track(self):
        lifecycle.add_tracking_update(
            VENDOR_OWNER, "vendor", self.order.pk,
            status="picked_up", note="Rider on the way", latitude="18.5204", longitude="73.8567",
        )
        data = lifecycle.track_order(CUSTOMER, "customer", self.order.pk)
        self.assertEqual(data["status"], "pending")
        self.assertEqual(len(data["timeline"]), 1)
        self.assertEqual(len(data["tracking"]), 1)
        self.assertEqual(data["tracking"][0]["location"], {"latitude": 18.5204, "longitude": 73.8567})
        self.assertIsNotNone(data["estimated_delivery"])

    def test_customer_cannot_add_tracking(self):
        with self.assertRaises(errors.Forbidden):
            lifecycle.add_tracking_update(CUSTOMER, "customer", self.order.pk, note="hi")

    def test_tracking_needs_both_coordinates(self):
        with self.assertRaises(errors.ValidationError):
            lifecycle.add_tracking_update(VENDOR_OWNER, "vendor", self.order.pk, latitude="18.5")


@override_settings(ORDER_TAX_RATE=Decimal("0.05"))
class ReorderTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor)
        self.order = place_order(self.item, payment_method="cod")

    def test_reorder_reprices_against_live_catalog(self):
        self.item.price = Decimal("300.00")
        self.item.save()
        new = lifecycle.reorder(CUSTOMER, self.order.pk)
        self.assertNotEqual(new.pk, self.order.pk)
        self.assertEqual(new.status, "pending")
        self.assertEqual(new.subtotal, Decimal("600.00"))
        self.assertEqual(new.timeline[0].note, "Reorder placed successfully")
        self.assertEqual(new.delivery_address["city"], "Pune")

    def test_reorder_of_unavailable_item_fails(self):
        self.item.is_available = False
        self.item.save()
        with self.assertRaises(errors.ItemUnavailable):
            lifecycle.reorder(CUSTOMER, self.order.pk)

    def test_only_owner_can_reorder(self):
        with self.assertRaises(errors.Forbidden):
            lifecycle.reorder(OTHER_CUSTOMER, self.order.pk)
