"""
orders.views

Thin DRF wrappers over orders.lifecycle. Identity comes from
RouterHeaderAuthentication (request.user is a Caller); every failure is
rendered by orders.handlers.order_exception_handler.

Success envelope: {"ok": true, "ver": "...", "data": {...}}
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from orders import errors, lifecycle
from orders.handlers import API_VER
from orders.serializers import (
    CancelSerializer,
    CreateOrderSerializer,
    OrderSerializer,
    StatusUpdateSerializer,
    TrackingUpdateSerializer,
)
from orders.transitions import ROLE_CUSTOMER


def ok(data, http_status=status.HTTP_200_OK) -> Response:
    return Response({"ok": True, "ver": API_VER, "data": data}, status=http_status)


def _customer_only(caller) -> None:
    if caller.role != ROLE_CUSTOMER:
        raise errors.Forbidden("Only customers can do that.")


class OrderCreateView(APIView):
    def post(self, request):
        _customer_only(request.user)
        ser = CreateOrderSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = lifecycle.create_order(
            customer_id=request.user.caller_id,
            lines=[dict(l) for l in ser.validated_data["lines"]],
            delivery_address=ser.validated_data["delivery_address"],
            payment_method=ser.validated_data["payment_method"],
            special_instructions=ser.validated_data["special_instructions"],
        )
        return ok(OrderSerializer(order).data, status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    def get(self, request, order_id):
        order = lifecycle.get_order(request.user.caller_id, request.user.role, order_id)
        return ok(OrderSerializer(order).data)


class OrderStatusView(APIView):
    def post(self, request, order_id):
        ser = StatusUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = lifecycle.advance_status(
            request.user.caller_id,
            request.user.role,
            order_id,
            ser.validated_data["status"],
            ser.validated_data["note"],
        )
        return ok(OrderSerializer(order).data)


class OrderCancelView(APIView):
    def post(self, request, order_id):
        _customer_only(request.user)
        ser = CancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = lifecycle.cancel_order(request.user.caller_id, order_id, ser.validated_data["reason"])
        return ok(OrderSerializer(order).data)


class OrderTrackView(APIView):
    def get(self, request, order_id):
        return ok(lifecycle.track_order(request.user.caller_id, request.user.role, order_id))


class OrderTrackingUpdateView(APIView):
    def post(self, request, order_id):
        ser = TrackingUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        entry = lifecycle.add_tracking_update(
            request.user.caller_id,
            request.user.role,
            order_id,
            status=ser.validated_data["status"],
            note=ser.validated_data["note"],
            latitude=ser.validated_data["latitude"],
            longitude=ser.validated_data["longitude"],
        )
        return ok(entry.as_dict(), status.HTTP_201_CREATED)


class OrderReorderView(APIView):
    def post(self, request, order_id):
        _customer_only(request.user)
        order = lifecycle.reorder(request.user.caller_id, order_id)
        return ok(OrderSerializer(order).data, status.HTTP_201_CREATED)
