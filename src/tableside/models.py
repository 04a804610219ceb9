"""Data models for tableside."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .errors import InvalidPriceError

CENT = Decimal("0.01")


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def to_decimal(value: Any) -> Decimal:
    """Coerce a price-like value (str, int, float, Decimal, None) to Decimal.

    Floats go through ``str`` so 10.1 becomes Decimal("10.1") rather than its
    binary expansion. Unparseable values, infinities, NaN and None become zero.
    """
    if value is None or value == "":
        return Decimal("0")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def parse_price(value: Any) -> Decimal:
    """
    Convert a unit price to Decimal, strictly.

    Raises:
        InvalidPriceError: If the price is missing, not a number, infinite,
            NaN or negative.
    """
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise InvalidPriceError(value, "price is required")
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidPriceError(value, "not a number") from None
    if not price.is_finite():
        raise InvalidPriceError(value, "not a finite amount")
    if price < 0:
        raise InvalidPriceError(value, "must not be negative")
    return price


def money(value: Decimal) -> Decimal:
    """Round an amount to cents for display."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(Enum):
    """Server-reported order states."""

    ACTIVE = "active"
    AWAITING_PAYMENT = "awaiting-payment"
    CLOSED = "closed"


class ItemStatus(Enum):
    """Per-line fulfillment states on a ticket."""

    PENDING = "pending"
    FULFILLED = "fulfilled"


class PaymentMethod(Enum):
    """How the diner intends to pay when requesting the bill."""

    CARD = "card"
    CASH = "cash"


@dataclass(frozen=True)
class Restaurant:
    """Restaurant identity bound from a scanned QR code."""

    id: str
    display_name: str = "Restaurant"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "display_name": self.display_name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Restaurant":
        return cls(id=str(data["id"]), display_name=data.get("display_name") or "Restaurant")


@dataclass(frozen=True)
class Product:
    """A menu entry."""

    product_id: str
    name: str
    unit_price: Decimal
    description: str | None = None
    category: str = "General"
    image_url: str | None = None

    def __post_init__(self):
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "unit_price", parse_price(self.unit_price))

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "description": self.description,
            "category": self.category,
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(
            product_id=str(data["product_id"]),
            name=data["name"],
            unit_price=data.get("unit_price"),
            description=data.get("description"),
            category=data.get("category") or "General",
            image_url=data.get("image_url"),
        )


@dataclass
class CartLine:
    """A line in the cart.

    Lines are identified by (product_id, notes): the same product with
    different notes is a different line.
    """

    product_id: str
    display_name: str
    unit_price: Decimal
    notes: str = ""
    quantity: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.product_id, self.notes)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def copy(self) -> "CartLine":
        return CartLine(
            product_id=self.product_id,
            display_name=self.display_name,
            unit_price=self.unit_price,
            notes=self.notes,
            quantity=self.quantity,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "display_name": self.display_name,
            "unit_price": str(money(self.unit_price)),
            "notes": self.notes,
            "quantity": self.quantity,
            "subtotal": str(money(self.subtotal)),
        }


@dataclass(frozen=True)
class OrderItem:
    """One entry of an order payload."""

    product_id: str
    quantity: int
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"product_id": self.product_id, "quantity": self.quantity, "notes": self.notes}


@dataclass(frozen=True)
class OrderPayload:
    """What gets sent to the order gateway."""

    pin: str
    items: tuple[OrderItem, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"pin": self.pin, "items": [item.to_dict() for item in self.items]}

    @classmethod
    def from_lines(cls, pin: str, lines: list[CartLine]) -> "OrderPayload":
        """Build a payload from cart lines, preserving their order."""
        return cls(
            pin=pin,
            items=tuple(
                OrderItem(product_id=line.product_id, quantity=line.quantity, notes=line.notes)
                for line in lines
            ),
        )


# Collaborator responses


@dataclass(frozen=True)
class SessionCheck:
    """Answer of the session oracle."""

    valid: bool


@dataclass(frozen=True)
class OrderResponse:
    """Answer of the order gateway to a submission."""

    ok: bool
    table: str | None = None
    message: str | None = None
    authorization_rejected: bool = False
    status: int | None = None


@dataclass(frozen=True)
class BillResponse:
    """Answer of the order gateway to a bill request."""

    ok: bool
    message: str | None = None
    authorization_rejected: bool = False
    status: int | None = None


@dataclass(frozen=True)
class TicketItem:
    """A line of the server-side ticket."""

    name: str
    quantity: int
    subtotal: Decimal
    item_status: str = ItemStatus.PENDING.value

    @property
    def fulfilled(self) -> bool:
        return self.item_status == ItemStatus.FULFILLED.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "subtotal": str(money(self.subtotal)),
            "item_status": self.item_status,
        }


@dataclass(frozen=True)
class Ticket:
    """Server-side view of the table's active order."""

    restaurant: str | None
    table: str | None
    items: tuple[TicketItem, ...]
    total: Decimal
    order_status: str  # OrderStatus value
    server_status: str | None = None  # status as the backend spelled it

    @property
    def awaiting_payment(self) -> bool:
        return self.order_status == OrderStatus.AWAITING_PAYMENT.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "restaurant": self.restaurant,
            "table": self.table,
            "items": [item.to_dict() for item in self.items],
            "total": str(money(self.total)),
            "order_status": self.order_status,
            "server_status": self.server_status,
        }


@dataclass(frozen=True)
class TicketResponse:
    """Answer of the order gateway to a tracking query."""

    active: bool
    ticket: Ticket | None = None


# Results surfaced to callers


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a successful order submission."""

    pin: str
    table_id: str | None
    items_submitted: int
    total: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "pin": self.pin,
            "table_id": self.table_id,
            "items_submitted": self.items_submitted,
            "total": str(money(self.total)),
        }


@dataclass(frozen=True)
class Notice:
    """A user-facing message the presentation layer should show."""

    kind: str  # "session_closed" | "bill_requested"
    title: str
    message: str
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "created_at": self.created_at,
        }
