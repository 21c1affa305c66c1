from decimal import Decimal

from django.test import TestCase

from catalog import services
from catalog.models import FoodItem, FoodItemAddOn, FoodItemVariant, Vendor


class CatalogServicesTests(TestCase):
    def setUp(self):
        self.vendor = Vendor.objects.create(
            owner_id="vend-1",
            business_name="Spice Route",
            delivery_fee=Decimal("30.00"),
        )
        self.item = FoodItem.objects.create(vendor=self.vendor, name="Biryani", price=Decimal("250.00"))
        FoodItemVariant.objects.create(food_item=self.item, name="Large", price=Decimal("320.00"))
        FoodItemAddOn.objects.create(food_item=self.item, name="Raita", price=Decimal("25.00"), is_available=False)

    def test_get_food_item_snapshot(self):
        view = services.get_food_item(self.item.pk)
        self.assertEqual(view.name, "Biryani")
        self.assertEqual(view.vendor_id, self.vendor.pk)
        self.assertEqual(view.variant("Large").price, Decimal("320.00"))
        self.assertIsNone(view.variant("Small"))
        self.assertFalse(view.add_on("Raita").is_available)

    def test_missing_rows_return_none(self):
        self.assertIsNone(services.get_food_item(999999))
        self.assertIsNone(services.get_vendor(999999))
        self.assertIsNone(services.get_food_item("not-an-id"))

    def test_vendor_accepts_orders_only_when_active_and_open(self):
        self.assertTrue(services.get_vendor(self.vendor.pk).accepts_orders)
        Vendor.objects.filter(pk=self.vendor.pk).update(is_open=False)
        self.assertFalse(services.get_vendor(self.vendor.pk).accepts_orders)
