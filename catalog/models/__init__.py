# -*- coding: utf-8 -*-
"""
Catalog - Models package entrypoint.

This app uses a models/ package (not a single models.py); Django discovers
models when these modules are imported.
"""

from .vendor import Vendor
from .food_item import FoodItem, FoodItemAddOn, FoodItemVariant

__all__ = [
    "Vendor",
    "FoodItem",
    "FoodItemVariant",
    "FoodItemAddOn",
]
