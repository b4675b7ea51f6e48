import random
import string
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional

from django.db import models

from .exceptions import ValidationError

ORDERS_COLLECTION = "orders"
SCHEDULED_DELETIONS_COLLECTION = "scheduled_deletions"

GUEST_CUSTOMER_ID = "guest"
ORDER_NUMBER_LENGTH = 9


class OrderStatus(models.TextChoices):
    PLACED = 'Placed', 'Order Placed'
    PREPARING = 'Preparing', 'Preparing'
    OUT_FOR_DELIVERY = 'OutForDelivery', 'Out for Delivery'
    DELIVERED = 'Delivered', 'Delivered'


# Values written by older storefront builds.
LEGACY_STATUS_VALUES = {
    'Order Placed': OrderStatus.PLACED,
    'Out for Delivery': OrderStatus.OUT_FOR_DELIVERY,
}


def parse_status(value) -> OrderStatus:
    """
    Maps a stored or requested status string onto OrderStatus, accepting the
    legacy display values. Raises ValidationError for anything else.
    """
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Unknown order status: {value!r}")
    if value in LEGACY_STATUS_VALUES:
        return LEGACY_STATUS_VALUES[value]
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value!r}")


def generate_order_number() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return ''.join(random.choices(alphabet, k=ORDER_NUMBER_LENGTH))


def _to_price(value, what) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid price for {what}: {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid price for {what}: {value!r}")
    if price < 0:
        raise ValidationError(f"Price for {what} cannot be negative.")
    return price


def _clean(value) -> str:
    return (value or "").strip() if isinstance(value, str) else ""


def _as_list(value, what) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"Addons for '{what}' must be a list.")
    return value


@dataclass(frozen=True)
class Extra:
    """A priced selection on a line item: an addon or a crust."""

    name: str
    price: float = 0.0

    @classmethod
    def from_payload(cls, data, what):
        if isinstance(data, str):
            return cls(name=data)
        if not isinstance(data, dict) or not _clean(data.get('name')):
            raise ValidationError(f"Invalid {what} selection: {data!r}")
        return cls(name=_clean(data['name']), price=_to_price(data.get('price', 0), what))

    def to_document(self):
        return {"name": self.name, "price": self.price}


@dataclass(frozen=True)
class LineItem:
    name: str
    price: float
    qty: int
    size: Optional[str] = None
    addons: List[Extra] = field(default_factory=list)
    crust: Optional[Extra] = None

    @property
    def unit_price(self) -> float:
        extras = sum(addon.price for addon in self.addons)
        if self.crust is not None:
            extras += self.crust.price
        return self.price + extras

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.qty, 2)

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            raise ValidationError(f"Invalid line item: {data!r}")
        name = _clean(data.get('name'))
        if not name:
            raise ValidationError("Every line item needs a name.")

        qty = data.get('qty', data.get('quantity'))
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise ValidationError(f"Invalid quantity for '{name}': {qty!r}")

        crust = data.get('crust')
        return cls(
            name=name,
            price=_to_price(data.get('price'), name),
            qty=qty,
            size=_clean(data.get('size')) or None,
            addons=[Extra.from_payload(a, 'addon') for a in _as_list(data.get('addons'), name)],
            crust=Extra.from_payload(crust, 'crust') if crust else None,
        )

    @classmethod
    def from_document(cls, data):
        crust = data.get('crust')
        return cls(
            name=data.get('name', ''),
            price=float(data.get('price') or 0),
            qty=int(data.get('qty', data.get('quantity')) or 0),
            size=data.get('size'),
            addons=[Extra.from_payload(a, 'addon') for a in data.get('addons') or []],
            crust=Extra.from_payload(crust, 'crust') if crust else None,
        )

    def to_document(self):
        return {
            "name": self.name,
            "price": self.price,
            "qty": self.qty,
            "size": self.size,
            "addons": [addon.to_document() for addon in self.addons],
            "crust": self.crust.to_document() if self.crust else None,
            "lineTotal": self.line_total,
        }


@dataclass(frozen=True)
class DeliveryDetails:
    name: str
    phone: str
    address: str
    custom_message: Optional[str] = None
    is_university: bool = False
    university_gate: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError("Delivery details must be an object.")
        details = cls(
            name=_clean(data.get('name')),
            phone=_clean(data.get('phone')),
            address=_clean(data.get('address')),
            custom_message=_clean(data.get('customMessage')) or None,
            is_university=bool(data.get('isUniversity', False)),
            university_gate=_clean(data.get('universityGate')) or None,
        )
        if not details.name:
            raise ValidationError("Please enter your name.")
        if not details.phone:
            raise ValidationError("A phone number is required.")
        if not details.address:
            raise ValidationError("Please provide a delivery address.")
        if details.is_university and not details.university_gate:
            raise ValidationError("Please select university gate.")
        return details

    @classmethod
    def from_document(cls, data):
        data = data if isinstance(data, dict) else {}
        return cls(
            name=data.get('name', ''),
            phone=data.get('phone', ''),
            address=data.get('address', ''),
            custom_message=data.get('customMessage'),
            is_university=bool(data.get('isUniversity', False)),
            university_gate=data.get('universityGate'),
        )

    def to_document(self):
        return {
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "customMessage": self.custom_message,
            "isUniversity": self.is_university,
            "universityGate": self.university_gate,
        }


@dataclass(frozen=True)
class OrderInput:
    """What the checkout flow submits. A client-side totalPrice is ignored."""

    customer_id: str
    items: List[LineItem]
    delivery: DeliveryDetails

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            raise ValidationError("Order payload must be a JSON object.")
        raw_items = data.get('items') or []
        if not isinstance(raw_items, list):
            raise ValidationError("Order items must be a list.")
        if not raw_items:
            raise ValidationError("Cannot place an empty order.")
        return cls(
            customer_id=_clean(data.get('userId')) or GUEST_CUSTOMER_ID,
            items=[LineItem.from_payload(item) for item in raw_items],
            delivery=DeliveryDetails.from_payload(data.get('userDetails')),
        )

    @property
    def total_price(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)


@dataclass(frozen=True)
class Order:
    id: str
    customer_id: str
    items: List[LineItem]
    total_price: float
    delivery: DeliveryDetails
    status: OrderStatus
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    order_number: Optional[str] = None

    @property
    def is_delivered(self) -> bool:
        return self.status == OrderStatus.DELIVERED

    def with_status(self, status, updated_at):
        return replace(self, status=status, updated_at=updated_at)

    @classmethod
    def from_document(cls, order_id, data):
        return cls(
            id=order_id,
            customer_id=data.get('userId') or GUEST_CUSTOMER_ID,
            items=[LineItem.from_document(item) for item in data.get('items') or []],
            total_price=float(data.get('totalPrice', data.get('totalItemPrice')) or 0),
            delivery=DeliveryDetails.from_document(data.get('userDetails')),
            status=parse_status(data.get('status') or OrderStatus.PLACED),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
            order_number=data.get('orderNumber'),
        )

    def to_document(self):
        return {
            "userId": self.customer_id,
            "items": [item.to_document() for item in self.items],
            "totalPrice": self.total_price,
            "userDetails": self.delivery.to_document(),
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "orderNumber": self.order_number,
        }

    def to_json(self):
        data = self.to_document()
        data["id"] = self.id
        data["statusLabel"] = self.status.label
        data["createdAt"] = self.created_at.isoformat() if self.created_at else None
        data["updatedAt"] = self.updated_at.isoformat() if self.updated_at else None
        return data

    def __str__(self):
        return f"Order {self.id} for user {self.customer_id} - {self.status.label}"
