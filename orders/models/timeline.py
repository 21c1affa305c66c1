"""
orders.models.timeline

Append-only logs hanging off an Order:
- TimelineEntry: one row per accepted status transition (the audit log).
- TrackingEntry: delivery tracking pings added by the vendor.

Rows are written once. Instance save() on an existing row, instance delete()
and queryset update()/delete() all raise.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class AppendOnlyError(Exception):
    pass


class AppendOnlyQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise AppendOnlyError(f"{self.model.__name__} rows cannot be updated.")

    def delete(self):
        raise AppendOnlyError(f"{self.model.__name__} rows cannot be deleted.")


class AppendOnlyModel(models.Model):
    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError(f"{type(self).__name__} rows cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyError(f"{type(self).__name__} rows cannot be deleted.")


class TimelineEntry(AppendOnlyModel):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="timeline_entries",
    )
    seq = models.PositiveIntegerField()
    status = models.CharField(max_length=32)
    timestamp = models.DateTimeField(default=timezone.now, editable=False)
    note = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        ordering = ("order", "seq")
        constraints = [
            models.UniqueConstraint(fields=["order", "seq"], name="uniq_timeline_seq_per_order"),
        ]

    def as_dict(self) -> dict:
        return {"status": self.status, "timestamp": self.timestamp.isoformat(), "note": self.note}

    def __str__(self) -> str:
        return f"#{self.seq} {self.status}"


class TrackingEntry(AppendOnlyModel):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="tracking_entries",
    )
    timestamp = models.DateTimeField(default=timezone.now, editable=False)
    status = models.CharField(max_length=64, blank=True, default="")
    note = models.CharField(max_length=500, blank=True, default="")
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    class Meta:
        ordering = ("order", "timestamp", "id")

    def as_dict(self) -> dict:
        location = None
        if self.latitude is not None and self.longitude is not None:
            location = {"latitude": float(self.latitude), "longitude": float(self.longitude)}
        return {
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
            "note": self.note,
            "location": location,
        }
