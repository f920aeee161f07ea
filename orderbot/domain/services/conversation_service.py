# orderbot/domain/services/conversation_service.py
"""
Per-customer conversation state machine.

    INITIAL → BROWSING → COLLECTING_NAME → COLLECTING_ADDRESS
            → COLLECTING_PAYMENT → CONFIRMING → (SUBMITTED) → INITIAL

``advance`` is pure: given a session and a typed intent it decides the next
session, the replies and an optional command.  ``ConversationService`` runs
the command (order submission, order tracking, feedback) and only hands the
new session back when the command succeeded; the caller commits it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from orderbot.domain.errors import NoVendorAvailableError, OrderStoreError
from orderbot.domain.i18n import status_label, t
from orderbot.domain.models import (
    ChoiceOption,
    ConversationState,
    InboundEvent,
    Intent,
    IntentKind,
    Location,
    OutboundMessage,
    PaymentMethod,
    Session,
)
from orderbot.domain.ports import CatalogLookup, OrderStore
from orderbot.domain.services import cart_service
from orderbot.domain.services.intent_parser import parse_customer_intent
from orderbot.domain.services.notification_service import (
    catalog_message,
    choice_message,
    location_request_message,
    text_message,
)

logger = logging.getLogger("conversation_service")

S = ConversationState

WELCOME_OPTIONS = (
    ChoiceOption(id="order_now", title="Order Now"),
    ChoiceOption(id="contact_us", title="Contact Us"),
    ChoiceOption(id="help", title="Help"),
)
CART_OPTIONS = (
    ChoiceOption(id="checkout", title="Checkout"),
    ChoiceOption(id="clear_cart", title="Clear Cart"),
)
PAYMENT_OPTIONS = (
    ChoiceOption(id="pay_cash", title="Cash on Delivery"),
    ChoiceOption(id="pay_upi", title="UPI"),
    ChoiceOption(id="pay_card", title="Card"),
)
CONFIRM_OPTIONS = (
    ChoiceOption(id="place_order", title="Place Order"),
    ChoiceOption(id="modify_order", title="Modify Order"),
)

PAYMENT_LABELS = {
    PaymentMethod.CASH: "cash",
    PaymentMethod.UPI: "UPI",
    PaymentMethod.CARD: "card",
}


class Command(str, Enum):
    NONE = "none"
    SUBMIT_ORDER = "submit_order"
    TRACK_ORDERS = "track_orders"
    SUBMIT_FEEDBACK = "submit_feedback"


@dataclass(frozen=True)
class Transition:
    session: Session
    replies: tuple[OutboundMessage, ...] = ()
    command: Command = Command.NONE
    intent: Optional[Intent] = None


@dataclass
class ConversationResult:
    session: Session
    replies: list[OutboundMessage] = field(default_factory=list)
    submitted_order: Optional[str] = None


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def normalize_text(text: str) -> str:
    return " ".join((text or "").split())


def address_from_location(location: Location) -> str:
    parts = [p for p in (normalize_text(location.name or ""), normalize_text(location.address or "")) if p]
    if parts:
        return ", ".join(parts)
    return f"{location.latitude:.6f}, {location.longitude:.6f}"


def _cart_prompt(session: Session, symbol: str) -> OutboundMessage:
    summary = cart_service.summarize(session.cart)
    if summary.is_empty:
        return catalog_message(session.customer_id, t("CATALOG_HINT"))
    body = "{}\n\n{}".format(
        t(
            "CART_SUMMARY",
            lines=cart_service.format_lines(summary.lines, symbol),
            total=cart_service.format_money(summary.total, symbol),
        ),
        t("CART_ACTIONS"),
    )
    return choice_message(session.customer_id, body, CART_OPTIONS)


def _confirm_prompt(session: Session, symbol: str) -> OutboundMessage:
    summary = cart_service.summarize(session.cart)
    profile = session.profile
    body = t(
        "CONFIRM_SUMMARY",
        lines=cart_service.format_lines(summary.lines, symbol),
        total=cart_service.format_money(summary.total, symbol),
        name=profile.name or "",
        address=profile.address or "",
        payment=PAYMENT_LABELS.get(profile.payment_method, ""),
    )
    return choice_message(session.customer_id, body, CONFIRM_OPTIONS)


def canonical_prompt(session: Session, symbol: str) -> OutboundMessage:
    """The message that re-asks whatever the current state is waiting for."""
    to = session.customer_id
    state = session.state
    if state is S.BROWSING:
        return _cart_prompt(session, symbol)
    if state is S.COLLECTING_NAME:
        return text_message(to, t("ASK_NAME"))
    if state is S.COLLECTING_ADDRESS:
        return location_request_message(to, t("ASK_ADDRESS", name=session.profile.name or ""))
    if state is S.COLLECTING_PAYMENT:
        return choice_message(to, t("ASK_PAYMENT"), PAYMENT_OPTIONS)
    if state is S.CONFIRMING:
        return _confirm_prompt(session, symbol)
    return choice_message(to, t("WELCOME"), WELCOME_OPTIONS)


# ---------------------------------------------------------------------------
# Pure transition function
# ---------------------------------------------------------------------------

def advance(
    session: Session,
    intent: Intent,
    *,
    currency_symbol: str = "₹",
    support_contact: str = "",
) -> Transition:
    """Decide the next session and replies for one intent.

    For ``CART`` intents the caller has already merged the selections into
    ``session.cart``; the machine only forces ``BROWSING``.
    """
    to = session.customer_id
    state = session.state
    kind = intent.kind

    def stay(*replies: OutboundMessage) -> Transition:
        return Transition(session=session, replies=replies, intent=intent)

    def move(new_session: Session, *replies: OutboundMessage) -> Transition:
        return Transition(session=new_session, replies=replies, intent=intent)

    if kind is IntentKind.CART:
        browsing = session.model_copy(update={"state": S.BROWSING})
        return move(browsing, _cart_prompt(browsing, currency_symbol))

    if kind is IntentKind.CONTACT:
        return stay(text_message(to, t("CONTACT", contact=support_contact)))
    if kind is IntentKind.HELP:
        return stay(text_message(to, t("HELP")))
    if kind is IntentKind.TRACK:
        return Transition(session=session, command=Command.TRACK_ORDERS, intent=intent)
    if kind is IntentKind.FEEDBACK:
        return Transition(session=session, command=Command.SUBMIT_FEEDBACK, intent=intent)

    if state is S.INITIAL:
        if kind in (IntentKind.GREETING, IntentKind.ORDER):
            browsing = session.model_copy(update={"state": S.BROWSING})
            replies = [catalog_message(to, t("CATALOG_PROMPT"))]
            if kind is IntentKind.GREETING:
                replies.insert(0, choice_message(to, t("WELCOME"), WELCOME_OPTIONS))
            return move(browsing, *replies)

    elif state is S.BROWSING:
        if kind is IntentKind.CHECKOUT:
            if not session.cart:
                return stay(
                    text_message(to, t("CART_EMPTY")),
                    catalog_message(to, t("CATALOG_PROMPT")),
                )
            return move(
                session.model_copy(update={"state": S.COLLECTING_NAME}),
                text_message(to, t("ASK_NAME")),
            )
        if kind is IntentKind.CLEAR_CART:
            return move(
                session.model_copy(update={"cart": cart_service.clear(session.cart)}),
                text_message(to, t("CART_CLEARED")),
                catalog_message(to, t("CATALOG_PROMPT")),
            )
        if kind in (IntentKind.GREETING, IntentKind.ORDER):
            return stay(catalog_message(to, t("CATALOG_PROMPT")))

    elif state is S.COLLECTING_NAME:
        name = normalize_text(intent.text)
        if kind is IntentKind.TEXT and name:
            profile = session.profile.model_copy(update={"name": name})
            return move(
                session.model_copy(update={"state": S.COLLECTING_ADDRESS, "profile": profile}),
                location_request_message(to, t("ASK_ADDRESS", name=name)),
            )

    elif state is S.COLLECTING_ADDRESS:
        update: Optional[dict] = None
        if kind is IntentKind.LOCATION and intent.location is not None:
            update = {
                "address": address_from_location(intent.location),
                "latitude": intent.location.latitude,
                "longitude": intent.location.longitude,
            }
        elif kind is IntentKind.TEXT and normalize_text(intent.text):
            # A typed address replaces any coordinates shared earlier.
            update = {"address": normalize_text(intent.text), "latitude": None, "longitude": None}
        if update is not None:
            profile = session.profile.model_copy(update=update)
            return move(
                session.model_copy(update={"state": S.COLLECTING_PAYMENT, "profile": profile}),
                choice_message(to, t("ASK_PAYMENT"), PAYMENT_OPTIONS),
            )

    elif state is S.COLLECTING_PAYMENT:
        if kind is IntentKind.PAYMENT and intent.payment_method is not None:
            profile = session.profile.model_copy(update={"payment_method": intent.payment_method})
            confirming = session.model_copy(update={"state": S.CONFIRMING, "profile": profile})
            return move(confirming, _confirm_prompt(confirming, currency_symbol))
        return stay(choice_message(to, t("INVALID_PAYMENT"), PAYMENT_OPTIONS))

    elif state is S.CONFIRMING:
        if kind is IntentKind.CONFIRM:
            return Transition(session=session.reset(), command=Command.SUBMIT_ORDER, intent=intent)
        if kind is IntentKind.MODIFY:
            browsing = session.model_copy(update={"state": S.BROWSING})
            return move(browsing, _cart_prompt(browsing, currency_symbol))

    return stay(canonical_prompt(session, currency_symbol))


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ConversationService:
    def __init__(
        self,
        catalog: CatalogLookup,
        workflow,
        store: OrderStore,
        *,
        currency_symbol: str = "₹",
        support_contact: str = "",
    ) -> None:
        self.catalog = catalog
        self.workflow = workflow
        self.store = store
        self.currency_symbol = currency_symbol
        self.support_contact = support_contact

    async def handle(self, session: Session, event: InboundEvent) -> ConversationResult:
        intent = parse_customer_intent(event, session.state)

        if intent.kind is IntentKind.CART:
            merged = await cart_service.add_selection(session.cart, intent.selections, self.catalog)
            session = session.model_copy(update={"cart": merged})

        transition = advance(
            session,
            intent,
            currency_symbol=self.currency_symbol,
            support_contact=self.support_contact,
        )

        if transition.session.state is not session.state:
            logger.info(
                "Customer %s: %s -> %s (%s)",
                session.customer_id, session.state.value,
                transition.session.state.value, intent.kind.value,
            )

        if transition.command is Command.SUBMIT_ORDER:
            return await self._submit(session)
        if transition.command is Command.TRACK_ORDERS:
            return await self._track(session)
        if transition.command is Command.SUBMIT_FEEDBACK:
            return await self._feedback(session, intent)

        return ConversationResult(session=transition.session, replies=list(transition.replies))

    async def _submit(self, session: Session) -> ConversationResult:
        to = session.customer_id
        summary = cart_service.summarize(session.cart)
        if summary.is_empty:
            browsing = session.model_copy(update={"state": S.BROWSING})
            return ConversationResult(
                session=browsing,
                replies=[text_message(to, t("CART_EMPTY")), catalog_message(to, t("CATALOG_PROMPT"))],
            )

        try:
            order = await self.workflow.create(to, summary.lines, session.profile)
        except NoVendorAvailableError:
            logger.warning("No vendor available for %s, order not placed", to)
            return ConversationResult(session=session, replies=[text_message(to, t("NO_VENDOR"))])
        except OrderStoreError as exc:
            logger.error("Order submission failed for %s: %s", to, exc)
            return ConversationResult(session=session, replies=[text_message(to, t("ORDER_RETRY"))])

        logger.info(
            "Customer %s: %s -> %s (%s)",
            to, S.CONFIRMING.value, S.SUBMITTED.value, order.order_number,
        )
        return ConversationResult(session=session.reset(), submitted_order=order.order_number)

    async def _feedback(self, session: Session, intent: Intent) -> ConversationResult:
        to = session.customer_id
        try:
            await self.workflow.submit_feedback(to, intent.order_number, intent.rating)
        except OrderStoreError as exc:
            logger.error("Feedback for %s from %s failed: %s", intent.order_number, to, exc)
            return ConversationResult(session=session, replies=[text_message(to, t("FEEDBACK_UNAVAILABLE"))])
        return ConversationResult(session=session)

    async def _track(self, session: Session) -> ConversationResult:
        to = session.customer_id
        try:
            orders = await self.store.list_for_customer(to, self.workflow.open_statuses)
        except OrderStoreError as exc:
            logger.error("Order lookup failed for %s: %s", to, exc)
            return ConversationResult(session=session, replies=[text_message(to, t("TRACK_UNAVAILABLE"))])

        if not orders:
            return ConversationResult(session=session, replies=[text_message(to, t("TRACK_NONE"))])

        lines = "\n".join(
            f"• {order.order_number}: {status_label(order.status)} "
            f"({cart_service.format_money(order.total, self.currency_symbol)})"
            for order in orders
        )
        return ConversationResult(session=session, replies=[text_message(to, t("TRACK_HEADER", lines=lines))])
