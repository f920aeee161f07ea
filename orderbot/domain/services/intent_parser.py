# orderbot/domain/services/intent_parser.py
"""
Normalisation of inbound events into the closed intent vocabulary.

Customer events become an ``Intent``; operator events become an
``OperatorAction``.  Nothing downstream ever switches on raw strings.
"""

from __future__ import annotations

import re
from typing import Optional

from orderbot.domain.models import (
    ConversationState,
    EventKind,
    InboundEvent,
    Intent,
    IntentKind,
    OperatorAction,
    OperatorActionKind,
    PaymentMethod,
)

# States where typed text is the expected answer and must not be
# keyword-matched ("Order" is a perfectly good street name).
FREE_INPUT_STATES = {
    ConversationState.COLLECTING_NAME,
    ConversationState.COLLECTING_ADDRESS,
}

# Interactive reply ids we send out ourselves.
BUTTON_INTENTS: dict[str, IntentKind] = {
    "order_now": IntentKind.ORDER,
    "contact_us": IntentKind.CONTACT,
    "help": IntentKind.HELP,
    "checkout": IntentKind.CHECKOUT,
    "clear_cart": IntentKind.CLEAR_CART,
    "place_order": IntentKind.CONFIRM,
    "modify_order": IntentKind.MODIFY,
    "track_order": IntentKind.TRACK,
}

TEXT_INTENTS: dict[str, IntentKind] = {
    "hi": IntentKind.GREETING,
    "hii": IntentKind.GREETING,
    "hello": IntentKind.GREETING,
    "hey": IntentKind.GREETING,
    "start": IntentKind.GREETING,
    "menu": IntentKind.GREETING,
    "namaste": IntentKind.GREETING,
    "order": IntentKind.ORDER,
    "order now": IntentKind.ORDER,
    "order_now": IntentKind.ORDER,
    "checkout": IntentKind.CHECKOUT,
    "check out": IntentKind.CHECKOUT,
    "clear": IntentKind.CLEAR_CART,
    "clear cart": IntentKind.CLEAR_CART,
    "clear_cart": IntentKind.CLEAR_CART,
    "empty cart": IntentKind.CLEAR_CART,
    "confirm": IntentKind.CONFIRM,
    "yes": IntentKind.CONFIRM,
    "place order": IntentKind.CONFIRM,
    "place_order": IntentKind.CONFIRM,
    "modify": IntentKind.MODIFY,
    "modify order": IntentKind.MODIFY,
    "modify_order": IntentKind.MODIFY,
    "edit": IntentKind.MODIFY,
    "change": IntentKind.MODIFY,
    "track": IntentKind.TRACK,
    "track order": IntentKind.TRACK,
    "status": IntentKind.TRACK,
    "my orders": IntentKind.TRACK,
    "contact": IntentKind.CONTACT,
    "contact us": IntentKind.CONTACT,
    "support": IntentKind.CONTACT,
    "help": IntentKind.HELP,
    "?": IntentKind.HELP,
}

PAYMENT_ALIASES: dict[str, PaymentMethod] = {
    "cash": PaymentMethod.CASH,
    "cod": PaymentMethod.CASH,
    "cash on delivery": PaymentMethod.CASH,
    "pay_cash": PaymentMethod.CASH,
    "upi": PaymentMethod.UPI,
    "pay_upi": PaymentMethod.UPI,
    "card": PaymentMethod.CARD,
    "pay_card": PaymentMethod.CARD,
}

_FEEDBACK_RE = re.compile(r"^(?:feedback|rate|rating)[\s_]+([1-5])[\s_]+([a-z0-9-]+)$")
_FEEDBACK_ORDER_FIRST_RE = re.compile(r"^(?:feedback|rate|rating)[\s_]+([a-z0-9-]+)[\s_]+([1-5])$")

_OPERATOR_RE = re.compile(
    r"^(accept|reject|picked[\s_-]?up|out[\s_-]?for[\s_-]?delivery|delivered)[\s_:]+([a-z0-9-]+)$"
)

_OPERATOR_KINDS = {
    "accept": OperatorActionKind.ACCEPT,
    "reject": OperatorActionKind.REJECT,
    "pickedup": OperatorActionKind.PICKED_UP,
    "outfordelivery": OperatorActionKind.OUT_FOR_DELIVERY,
    "delivered": OperatorActionKind.DELIVERED,
}


def _clean(text: str) -> str:
    return " ".join((text or "").strip().lower().split()).rstrip("!.")


def _raw_token(event: InboundEvent) -> str:
    """The button id if the event is an interactive reply, else the text."""
    if event.kind is EventKind.BUTTON and event.button_id:
        return event.button_id
    return event.text


def parse_feedback(token: str) -> Optional[tuple[int, str]]:
    """Return ``(rating, order_number)`` for "feedback 5 ORD-1" style input."""
    cleaned = _clean(token)
    match = _FEEDBACK_RE.match(cleaned)
    if match:
        return int(match.group(1)), match.group(2).upper()
    match = _FEEDBACK_ORDER_FIRST_RE.match(cleaned)
    if match:
        return int(match.group(2)), match.group(1).upper()
    return None


def parse_customer_intent(event: InboundEvent, state: ConversationState) -> Intent:
    """Map a customer event to a typed intent for the conversation machine."""
    if event.kind is EventKind.CART:
        return Intent(kind=IntentKind.CART, selections=event.selections)

    if event.kind is EventKind.LOCATION and event.location is not None:
        return Intent(kind=IntentKind.LOCATION, location=event.location)

    if event.kind is EventKind.UNSUPPORTED:
        return Intent(kind=IntentKind.TEXT)

    raw = event.text.strip()

    if event.kind is EventKind.TEXT and state in FREE_INPUT_STATES:
        return Intent(kind=IntentKind.TEXT, text=raw)

    token = _raw_token(event)
    cleaned = _clean(token)

    if event.kind is EventKind.BUTTON and cleaned in BUTTON_INTENTS:
        return Intent(kind=BUTTON_INTENTS[cleaned], text=raw)

    if cleaned in PAYMENT_ALIASES:
        return Intent(kind=IntentKind.PAYMENT, text=raw, payment_method=PAYMENT_ALIASES[cleaned])

    feedback = parse_feedback(token)
    if feedback is not None:
        rating, order_number = feedback
        return Intent(kind=IntentKind.FEEDBACK, text=raw, rating=rating, order_number=order_number)

    if cleaned in TEXT_INTENTS:
        return Intent(kind=TEXT_INTENTS[cleaned], text=raw)

    return Intent(kind=IntentKind.TEXT, text=raw)


def parse_operator_action(event: InboundEvent) -> Optional[OperatorAction]:
    """Parse ``accept_ORD-1`` button ids or ``accept ORD-1`` typed commands."""
    match = _OPERATOR_RE.match(_clean(_raw_token(event)))
    if not match:
        return None
    verb = re.sub(r"[\s_-]", "", match.group(1))
    return OperatorAction(kind=_OPERATOR_KINDS[verb], order_number=match.group(2).upper())
