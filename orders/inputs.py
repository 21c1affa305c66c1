"""
orders.inputs

One typed input structure per exposed operation.

Services build these from their arguments and call `.validate()` once, before
any read-modify-write happens; a failure raises orders.errors.ValidationError
and nothing is written. The DRF serializers in orders.serializers only coerce
HTTP payloads into these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Tuple

from orders import errors
from orders.models import OrderStatus, PaymentMethod
from orders.transitions import CALLER_ROLES, ROLE_ADMIN, ROLE_VENDOR

ADDRESS_REQUIRED = ("name", "address", "city", "state", "pincode")
ADDRESS_TYPES = ("home", "work", "other")
MAX_LINES = 50
MAX_QUANTITY = 99


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _require_id(name: str, value: Any) -> None:
    if not _text(value):
        raise errors.ValidationError(f"{name} is required.")


def to_money(value: Any, name: str = "amount") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise errors.ValidationError(f"{name} must be a number.")
    if not amount.is_finite():
        raise errors.ValidationError(f"{name} must be a number.")
    if amount != amount.quantize(Decimal("0.01")):
        raise errors.ValidationError(f"{name} has more than two decimal places.")
    return amount


@dataclass(frozen=True)
class CartLine:
    food_item_id: Any
    quantity: int
    variant_name: Optional[str] = None
    add_on_names: Tuple[str, ...] = ()
    note: str = ""

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "CartLine":
        if not isinstance(data, Mapping):
            raise errors.ValidationError("Each line must be an object.")
        add_ons = data.get("add_on_names") or ()
        if isinstance(add_ons, str) or not isinstance(add_ons, Iterable):
            raise errors.ValidationError("add_on_names must be a list of names.")
        return cls(
            food_item_id=data.get("food_item_id"),
            quantity=data.get("quantity"),
            variant_name=_text(data.get("variant_name")) or None,
            add_on_names=tuple(_text(a) for a in add_ons),
            note=_text(data.get("note")),
        )

    def validate(self) -> "CartLine":
        _require_id("food_item_id", self.food_item_id)
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise errors.ValidationError("quantity must be an integer.")
        if self.quantity < 1 or self.quantity > MAX_QUANTITY:
            raise errors.ValidationError(f"quantity must be between 1 and {MAX_QUANTITY}.")
        if any(not name for name in self.add_on_names):
            raise errors.ValidationError("add-on names cannot be blank.")
        if len(set(self.add_on_names)) != len(self.add_on_names):
            raise errors.ValidationError("add-on names must be unique within a line.")
        if len(self.note) > 500:
            raise errors.ValidationError("note cannot exceed 500 characters.")
        return self


@dataclass(frozen=True)
class DeliveryAddress:
    name: str
    address: str
    city: str
    state: str
    pincode: str
    type: str = "home"
    landmark: str = ""
    phone: str = ""
    email: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "DeliveryAddress":
        if not isinstance(data, Mapping):
            raise errors.ValidationError("delivery_address must be an object.")
        missing = [k for k in ADDRESS_REQUIRED if not _text(data.get(k))]
        if missing:
            raise errors.ValidationError(f"delivery_address is missing: {', '.join(missing)}.")
        coords = data.get("coordinates") or {}
        try:
            lat = data.get("latitude", coords.get("latitude"))
            lng = data.get("longitude", coords.get("longitude"))
            lat = float(lat) if lat is not None else None
            lng = float(lng) if lng is not None else None
        except (TypeError, ValueError, AttributeError):
            raise errors.ValidationError("delivery_address coordinates must be numbers.")
        return cls(
            name=_text(data.get("name")),
            address=_text(data.get("address")),
            city=_text(data.get("city")),
            state=_text(data.get("state")),
            pincode=_text(data.get("pincode")),
            type=_text(data.get("type")) or "home",
            landmark=_text(data.get("landmark")),
            phone=_text(data.get("phone")),
            email=_text(data.get("email")),
            latitude=lat,
            longitude=lng,
        )

    def validate(self) -> "DeliveryAddress":
        if self.type not in ADDRESS_TYPES:
            raise errors.ValidationError(f"delivery_address.type must be one of {', '.join(ADDRESS_TYPES)}.")
        if self.latitude is not None and not -90 <= self.latitude <= 90:
            raise errors.ValidationError("delivery_address latitude is out of range.")
        if self.longitude is not None and not -180 <= self.longitude <= 180:
            raise errors.ValidationError("delivery_address longitude is out of range.")
        return self

    def as_dict(self) -> dict:
        data = {
            "type": self.type,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "landmark": self.landmark,
            "phone": self.phone,
            "email": self.email,
        }
        if self.latitude is not None and self.longitude is not None:
            data["coordinates"] = {"latitude": self.latitude, "longitude": self.longitude}
        return data


@dataclass(frozen=True)
class CreateOrderInput:
    customer_id: str
    lines: Tuple[CartLine, ...]
    delivery_address: DeliveryAddress
    payment_method: str
    special_instructions: str = ""
    discount: Decimal = Decimal("0.00")

    @classmethod
    def build(
        cls,
        customer_id,
        lines,
        delivery_address,
        payment_method,
        special_instructions: str = "",
        discount: Any = "0.00",
    ) -> "CreateOrderInput":
        if not isinstance(lines, (list, tuple)):
            raise errors.ValidationError("lines must be a list.")
        parsed = tuple(l if isinstance(l, CartLine) else CartLine.from_payload(l) for l in lines)
        address = (
            delivery_address if isinstance(delivery_address, DeliveryAddress)
            else DeliveryAddress.from_payload(delivery_address)
        )
        return cls(
            customer_id=_text(customer_id),
            lines=parsed,
            delivery_address=address,
            payment_method=_text(payment_method).lower(),
            special_instructions=_text(special_instructions),
            discount=to_money(discount, "discount"),
        ).validate()

    def validate(self) -> "CreateOrderInput":
        _require_id("customer_id", self.customer_id)
        if not self.lines:
            raise errors.ValidationError("Order must contain at least one item.")
        if len(self.lines) > MAX_LINES:
            raise errors.ValidationError(f"Order cannot contain more than {MAX_LINES} lines.")
        for line in self.lines:
            line.validate()
        self.delivery_address.validate()
        if self.payment_method not in PaymentMethod.values:
            raise errors.ValidationError(f"payment_method must be one of {', '.join(PaymentMethod.values)}.")
        if self.discount < 0:
            raise errors.ValidationError("discount cannot be negative.")
        return self


@dataclass(frozen=True)
class AdvanceStatusInput:
    caller_id: str
    role: str
    order_id: Any
    new_status: str
    note: str = ""

    def validate(self) -> "AdvanceStatusInput":
        _require_id("caller_id", self.caller_id)
        _require_id("order_id", self.order_id)
        if self.role not in CALLER_ROLES:
            raise errors.ValidationError("Unknown caller role.")
        if self.new_status not in OrderStatus.values:
            raise errors.ValidationError("Invalid status.")
        if len(self.note) > 500:
            raise errors.ValidationError("note cannot exceed 500 characters.")
        return self


@dataclass(frozen=True)
class CancelOrderInput:
    customer_id: str
    order_id: Any
    reason: str = ""

    def validate(self) -> "CancelOrderInput":
        _require_id("customer_id", self.customer_id)
        _require_id("order_id", self.order_id)
        if len(self.reason) > 500:
            raise errors.ValidationError("reason cannot exceed 500 characters.")
        return self


@dataclass(frozen=True)
class OrderAccessInput:
    caller_id: str
    role: str
    order_id: Any

    def validate(self) -> "OrderAccessInput":
        _require_id("caller_id", self.caller_id)
        _require_id("order_id", self.order_id)
        if self.role not in CALLER_ROLES:
            raise errors.ValidationError("Unknown caller role.")
        return self


@dataclass(frozen=True)
class TrackingUpdateInput:
    caller_id: str
    role: str
    order_id: Any
    status: str = ""
    note: str = ""
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None

    def validate(self) -> "TrackingUpdateInput":
        OrderAccessInput(self.caller_id, self.role, self.order_id).validate()
        if self.role not in (ROLE_VENDOR, ROLE_ADMIN):
            raise errors.Forbidden("Only the vendor or an admin can add tracking updates.")
        if (self.latitude is None) != (self.longitude is None):
            raise errors.ValidationError("latitude and longitude must be given together.")
        if self.latitude is not None and not -90 <= self.latitude <= 90:
            raise errors.ValidationError("latitude is out of range.")
        if self.longitude is not None and not -180 <= self.longitude <= 180:
            raise errors.ValidationError("longitude is out of range.")
        if not (self.status or self.note or self.latitude is not None):
            raise errors.ValidationError("Tracking update is empty.")
        return self


@dataclass(frozen=True)
class InitiatePaymentInput:
    customer_id: str
    order_id: Any

    def validate(self) -> "InitiatePaymentInput":
        _require_id("customer_id", self.customer_id)
        _require_id("order_id", self.order_id)
        return self


@dataclass(frozen=True)
class VerifyPaymentInput:
    customer_id: str
    order_id: Any
    gateway_payment_id: str
    signature: str = field(repr=False, default="")

    def validate(self) -> "VerifyPaymentInput":
        _require_id("customer_id", self.customer_id)
        _require_id("order_id", self.order_id)
        if not self.gateway_payment_id or not self.signature:
            raise errors.ValidationError("Order ID, payment ID and signature are required.")
        return self


@dataclass(frozen=True)
class ProcessRefundInput:
    caller_id: str
    role: str
    order_id: Any
    amount: Optional[Decimal] = None
    reason: str = ""

    def validate(self) -> "ProcessRefundInput":
        _require_id("caller_id", self.caller_id)
        _require_id("order_id", self.order_id)
        if self.role not in CALLER_ROLES:
            raise errors.ValidationError("Unknown caller role.")
        if self.amount is not None and self.amount <= 0:
            raise errors.ValidationError("Refund amount must be greater than zero.")
        if len(self.reason) > 500:
            raise errors.ValidationError("reason cannot exceed 500 characters.")
        return self
