from decimal import Decimal

from django.test import TestCase, override_settings

from orders import errors, lifecycle
from orders.inputs import CartLine
from orders.models import Order
from orders.pricing import PricingEngine, to_minor_units
from orders.tests.helpers import ADDRESS, CUSTOMER, add_add_on, add_variant, make_item, make_vendor, place_order


@override_settings(ORDER_TAX_RATE=Decimal("0.05"))
class PricingEngineTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor, price="280.00")
        self.engine = PricingEngine()

    def test_worked_example(self):
        priced = self.engine.price([CartLine(food_item_id=self.item.pk, quantity=2)])
        snap = priced.snapshot
        self.assertEqual(snap.subtotal, Decimal("560.00"))
        self.assertEqual(snap.delivery_fee, Decimal("30.00"))
        self.assertEqual(snap.tax, Decimal("28.00"))
        self.assertEqual(snap.total, Decimal("618.00"))
        self.assertEqual(to_minor_units(snap.total), 61800)

    def test_variant_and_add_ons_priced_per_unit(self):
        add_variant(self.item, "Large", "320.00")
        add_add_on(self.item, "Extra cheese", "40.00")
        add_add_on(self.item, "Mint chutney", "10.50")
        line = CartLine(
            food_item_id=self.item.pk,
            quantity=3,
            variant_name="Large",
            add_on_names=("Extra cheese", "Mint chutney"),
        )
        priced = self.engine.price([line])
        pl = priced.lines[0]
        self.assertEqual(pl.unit_price, Decimal("320.00"))
        self.assertEqual(pl.add_ons_price, Decimal("50.50"))
        self.assertEqual(pl.line_subtotal, Decimal("1111.50"))
        snap = priced.snapshot
        self.assertEqual(snap.total, snap.subtotal + snap.delivery_fee + snap.tax - snap.discount)

    def test_tax_rounded_half_up_once(self):
        cheap = make_item(self.vendor, name="Chai", price="0.30")
        snap = self.engine.price([CartLine(food_item_id=cheap.pk, quantity=1)]).snapshot
        # 0.30 * 0.05 = 0.015 -> 0.02
        self.assertEqual(snap.tax, Decimal("0.02"))
        self.assertEqual(snap.total, Decimal("30.32"))

    def test_unavailable_variant_rejected(self):
        add_variant(self.item, "Large", "320.00", is_available=False)
        with self.assertRaises(errors.ItemUnavailable):
            self.engine.price([CartLine(food_item_id=self.item.pk, quantity=1, variant_name="Large")])

    def test_unknown_add_on_rejected(self):
        with self.assertRaises(errors.ItemUnavailable):
            self.engine.price([CartLine(food_item_id=self.item.pk, quantity=1, add_on_names=("Nope",))])

    def test_unavailable_item_rejected(self):
        self.item.is_available = False
        self.item.save()
        with self.assertRaises(errors.ItemUnavailable):
            self.engine.price([CartLine(food_item_id=self.item.pk, quantity=1)])

    def test_closed_vendor_rejected(self):
        self.vendor.is_open = False
        self.vendor.save()
        with self.assertRaises(errors.ItemUnavailable):
            self.engine.price([CartLine(food_item_id=self.item.pk, quantity=1)])

    def test_discount_larger_than_total_rejected(self):
        with self.assertRaises(errors.ValidationError):
            self.engine.snapshot(Decimal("10.00"), Decimal("0.00"), Decimal("11.00"))


class CreateOrderPricingTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.item = make_item(self.vendor, price="280.00")

    def test_mixed_vendor_cart_creates_nothing(self):
        other = make_item(make_vendor(owner_id="vend-2"), name="Dosa", price="90.00")
        with self.assertRaises(errors.MixedVendorOrder):
            lifecycle.create_order(
                customer_id=CUSTOMER,
                lines=[
                    {"food_item_id": self.item.pk, "quantity": 1},
                    {"food_item_id": other.pk, "quantity": 1},
                ],
                delivery_address=dict(ADDRESS),
                payment_method="cod",
            )
        self.assertEqual(Order.objects.count(), 0)

    @override_settings(ORDER_TAX_RATE=Decimal("0.05"))
    def test_order_is_stamped_with_snapshot(self):
        order = place_order(self.item, quantity=2)
        self.assertEqual(order.total, Decimal("618.00"))
        self.assertEqual(order.payment_amount, order.total)

        # later catalog edits never touch a placed order
        self.item.price = Decimal("999.00")
        self.item.save()
        order.refresh_from_db()
        line = order.lines.get()
        self.assertEqual(line.unit_price, Decimal("280.00"))
        self.assertEqual(line.line_subtotal, Decimal("560.00"))
        self.assertEqual(order.total, Decimal("618.00"))
