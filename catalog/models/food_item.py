"""
catalog.models.food_item

Menu items plus their variants (priced alternatives) and add-ons (priced extras).
"""

from __future__ import annotations

from django.db import models

from .base import PricedOption, TimeStampedModel


class FoodItem(TimeStampedModel):
    vendor = models.ForeignKey(
        "catalog.Vendor",
        on_delete=models.CASCADE,
        related_name="food_items",
    )
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    is_available = models.BooleanField(default=True, db_index=True)

    # Popularity counter (units delivered).
    total_orders = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name


class FoodItemVariant(PricedOption):
    food_item = models.ForeignKey(
        "catalog.FoodItem",
        on_delete=models.CASCADE,
        related_name="variants",
    )

    class Meta(PricedOption.Meta):
        constraints = [
            models.UniqueConstraint(fields=["food_item", "name"], name="uniq_variant_name_per_item"),
        ]


class FoodItemAddOn(PricedOption):
    food_item = models.ForeignKey(
        "catalog.FoodItem",
        on_delete=models.CASCADE,
        related_name="add_ons",
    )

    class Meta(PricedOption.Meta):
        constraints = [
            models.UniqueConstraint(fields=["food_item", "name"], name="uniq_addon_name_per_item"),
        ]
