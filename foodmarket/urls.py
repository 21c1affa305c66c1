# /foodmarket/foodmarket/urls.py
"""
CHANGE LOG
----------
2026-09-02
- ADD: /api/payments/stripe/webhook/ lives in payments.urls (signed, csrf-exempt).  # CHANGED:

2026-08-14
- ADD: /health/ and /version/ inline endpoints placed before include() for readiness checks.
- ADD: /api/orders/ and /api/payments/ includes.
"""

from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path

VERSION = "foodmarket.v1.2-2026-09-02"


# --- Minimal inline endpoints for readiness ------------------------------------
def health_view(request):
    """Liveness probe."""
    return JsonResponse({"ok": True})


def version_view(request):
    """Version probe; bump string on releases."""
    return JsonResponse({"version": VERSION})


urlpatterns = [
    path("health/", health_view, name="health"),
    path("version/", version_view, name="version"),

    # Admin
    path("admin/", admin.site.urls),

    # Order lifecycle + payment reconciliation
    path("api/orders/", include("orders.urls", namespace="orders")),
    path("api/payments/", include("payments.urls", namespace="payments")),
]
