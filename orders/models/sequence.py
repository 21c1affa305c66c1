"""
orders.models.sequence

Named monotonically increasing counters (order numbers). Values are only
ever advanced with an F() update; see orders.store.next_sequence_value.
"""

from __future__ import annotations

from django.db import models


class Sequence(models.Model):
    name = models.CharField(max_length=64, primary_key=True)
    value = models.BigIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"
