"""
Domain models for the order bot.

Everything here is an immutable pydantic model: state machines never mutate
a session, cart or order in place, they build a new value and hand it back
to the owner (SessionManager or the order store).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ConversationState(str, Enum):
    INITIAL = "INITIAL"
    BROWSING = "BROWSING"
    COLLECTING_NAME = "COLLECTING_NAME"
    COLLECTING_ADDRESS = "COLLECTING_ADDRESS"
    COLLECTING_PAYMENT = "COLLECTING_PAYMENT"
    CONFIRMING = "CONFIRMING"
    # Transient: reported for a successful submission, never stored.
    SUBMITTED = "SUBMITTED"


class OrderStatus(str, Enum):
    PENDING_VENDOR_CONFIRMATION = "PENDING_VENDOR_CONFIRMATION"
    VENDOR_ACCEPTED = "VENDOR_ACCEPTED"
    VENDOR_REJECTED = "VENDOR_REJECTED"
    AWAITING_PICKUP = "AWAITING_PICKUP"
    PROCESSING = "PROCESSING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"


class Role(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    DELIVERY_PARTNER = "delivery_partner"
    ADMIN = "admin"

    @property
    def is_operator(self) -> bool:
        return self is not Role.CUSTOMER


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"


class CasOutcome(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

class Selection(_Frozen):
    """One entry of a catalog-cart payload."""

    product_id: str
    quantity: int
    unit_price_hint: Decimal = Decimal("0")


class CartLine(_Frozen):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartSummary(_Frozen):
    lines: tuple[CartLine, ...] = ()
    total: Decimal = Decimal("0")

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class Profile(_Frozen):
    name: Optional[str] = None
    address: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Session(_Frozen):
    customer_id: str
    state: ConversationState = ConversationState.INITIAL
    profile: Profile = Field(default_factory=Profile)
    cart: dict[str, CartLine] = Field(default_factory=dict)

    def reset(self) -> "Session":
        """A fresh session for the same customer (cart and profile cleared)."""
        return Session(customer_id=self.customer_id)


# ---------------------------------------------------------------------------
# Orders & operators
# ---------------------------------------------------------------------------

class Order(_Frozen):
    order_number: str
    customer_id: str
    items: tuple[CartLine, ...]
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING_VENDOR_CONFIRMATION

    # Profile snapshot taken at submission
    customer_name: Optional[str] = None
    address: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    vendor_id: Optional[str] = None
    vendor_name: Optional[str] = None
    delivery_partner_id: Optional[str] = None
    delivery_partner_name: Optional[str] = None
    rating: Optional[int] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CasResult(_Frozen):
    outcome: CasOutcome
    order: Optional[Order] = None

    @property
    def ok(self) -> bool:
        return self.outcome is CasOutcome.SUCCESS


class Operator(_Frozen):
    """A vendor or delivery partner; ``phone`` doubles as its identifier."""

    phone: str
    name: str
    role: Role
    latitude: Optional[float] = None
    longitude: Optional[float] = None


# ---------------------------------------------------------------------------
# Inbound events & intents
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    TEXT = "text"
    BUTTON = "button"
    LOCATION = "location"
    CART = "cart"
    UNSUPPORTED = "unsupported"


class Location(_Frozen):
    latitude: float
    longitude: float
    name: Optional[str] = None
    address: Optional[str] = None


class InboundEvent(_Frozen):
    """A parsed gateway message, already verified by the HTTP layer."""

    kind: EventKind
    message_id: Optional[str] = None
    text: str = ""
    button_id: Optional[str] = None
    location: Optional[Location] = None
    selections: tuple[Selection, ...] = ()


class IntentKind(str, Enum):
    GREETING = "greeting"
    ORDER = "order"
    CHECKOUT = "checkout"
    CLEAR_CART = "clear_cart"
    CONFIRM = "confirm"
    MODIFY = "modify"
    PAYMENT = "payment"
    CART = "cart"
    LOCATION = "location"
    TEXT = "text"
    TRACK = "track"
    CONTACT = "contact"
    HELP = "help"
    FEEDBACK = "feedback"


class Intent(_Frozen):
    kind: IntentKind
    text: str = ""
    payment_method: Optional[PaymentMethod] = None
    selections: tuple[Selection, ...] = ()
    location: Optional[Location] = None
    rating: Optional[int] = None
    order_number: Optional[str] = None


class OperatorActionKind(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    PICKED_UP = "picked_up"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"


class OperatorAction(_Frozen):
    kind: OperatorActionKind
    order_number: str


# ---------------------------------------------------------------------------
# Outbound messages
# ---------------------------------------------------------------------------

class OutboundKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"
    CATALOG = "catalog"
    LOCATION_REQUEST = "location_request"


class ChoiceOption(_Frozen):
    id: str
    title: str
    description: str = ""


class OutboundMessage(_Frozen):
    to: str
    kind: OutboundKind = OutboundKind.TEXT
    body: str = ""
    options: tuple[ChoiceOption, ...] = ()


class DeliveryResult(_Frozen):
    message: OutboundMessage
    ok: bool
    attempts: int
    error: Optional[str] = None
