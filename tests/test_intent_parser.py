"""Tests for inbound event normalisation."""

import pytest

from orderbot.domain.models import (
    ConversationState,
    EventKind,
    InboundEvent,
    IntentKind,
    Location,
    OperatorActionKind,
    PaymentMethod,
)
from orderbot.domain.services.intent_parser import (
    parse_customer_intent,
    parse_feedback,
    parse_operator_action,
)

from fakes import button, cart, text

S = ConversationState


@pytest.mark.parametrize(
    "body, expected",
    [
        ("hi", IntentKind.GREETING),
        ("Hello!", IntentKind.GREETING),
        ("order", IntentKind.ORDER),
        ("Checkout", IntentKind.CHECKOUT),
        ("clear cart", IntentKind.CLEAR_CART),
        ("track", IntentKind.TRACK),
        ("help", IntentKind.HELP),
        ("something else", IntentKind.TEXT),
    ],
)
def test_text_keywords(body, expected):
    assert parse_customer_intent(text(body), S.BROWSING).kind is expected


def test_free_input_states_skip_keywords():
    intent = parse_customer_intent(text("Order"), S.COLLECTING_NAME)
    assert intent.kind is IntentKind.TEXT
    assert intent.text == "Order"
    assert parse_customer_intent(text("  Checkout Lane 4 "), S.COLLECTING_ADDRESS).kind is IntentKind.TEXT


def test_buttons_are_typed_even_in_free_input_states():
    assert parse_customer_intent(button("checkout"), S.COLLECTING_NAME).kind is IntentKind.CHECKOUT


@pytest.mark.parametrize(
    "event, method",
    [
        (text("cash"), PaymentMethod.CASH),
        (text("COD"), PaymentMethod.CASH),
        (button("pay_upi", "UPI"), PaymentMethod.UPI),
        (button("pay_card", "Card"), PaymentMethod.CARD),
    ],
)
def test_payment_methods(event, method):
    intent = parse_customer_intent(event, S.COLLECTING_PAYMENT)
    assert intent.kind is IntentKind.PAYMENT
    assert intent.payment_method is method


def test_cart_and_location_payloads():
    assert parse_customer_intent(cart(("shirt", 1, "20")), S.CONFIRMING).kind is IntentKind.CART
    event = InboundEvent(kind=EventKind.LOCATION, location=Location(latitude=12.9, longitude=77.6))
    assert parse_customer_intent(event, S.COLLECTING_ADDRESS).kind is IntentKind.LOCATION


def test_unsupported_event_is_plain_text():
    event = InboundEvent(kind=EventKind.UNSUPPORTED)
    assert parse_customer_intent(event, S.COLLECTING_NAME).kind is IntentKind.TEXT


@pytest.mark.parametrize(
    "token, expected",
    [
        ("feedback 5 ORD123", (5, "ORD123")),
        ("feedback_4_ORD-1700000000000", (4, "ORD-1700000000000")),
        ("rate ord123 3", (3, "ORD123")),
        ("feedback 6 ORD123", None),
        ("feedback ORD123", None),
    ],
)
def test_parse_feedback(token, expected):
    assert parse_feedback(token) == expected


def test_feedback_intent_from_list_reply():
    intent = parse_customer_intent(button("feedback_5_ORD123"), S.INITIAL)
    assert intent.kind is IntentKind.FEEDBACK
    assert (intent.rating, intent.order_number) == (5, "ORD123")


@pytest.mark.parametrize(
    "event, kind, number",
    [
        (button("accept_ORD123"), OperatorActionKind.ACCEPT, "ORD123"),
        (button("reject_ORD-17"), OperatorActionKind.REJECT, "ORD-17"),
        (text("accept ord123"), OperatorActionKind.ACCEPT, "ORD123"),
        (text("pickedup ORD123"), OperatorActionKind.PICKED_UP, "ORD123"),
        (button("picked_up_ORD123"), OperatorActionKind.PICKED_UP, "ORD123"),
        (text("Out for delivery ORD123"), OperatorActionKind.OUT_FOR_DELIVERY, "ORD123"),
        (button("delivered_ORD123"), OperatorActionKind.DELIVERED, "ORD123"),
    ],
)
def test_operator_actions(event, kind, number):
    action = parse_operator_action(event)
    assert action is not None
    assert action.kind is kind
    assert action.order_number == number


@pytest.mark.parametrize("body", ["hi", "accept", "ship ORD123", ""])
def test_non_commands_are_not_operator_actions(body):
    assert parse_operator_action(text(body)) is None
