"""Tests for role routing, per-sender serialisation and the end-to-end flows."""

import asyncio
from dataclasses import dataclass
from decimal import Decimal

from orderbot.domain.models import ConversationState, EventKind, InboundEvent, OrderStatus
from orderbot.domain.services.session_manager import KeyedLock

from fakes import (
    ADMIN,
    CUSTOMER,
    PARTNER,
    VENDOR,
    FlakySessionStore,
    build_bot,
    button,
    cart,
    seed_order,
    text,
)

S = ConversationState
O = OrderStatus


# ---------------------------------------------------------------------------
# Scenario A: browse → checkout → place order
# ---------------------------------------------------------------------------

def test_customer_checkout_flow(event_loop, bot):
    bot.send(event_loop, CUSTOMER, text("hi"))
    assert bot.session(event_loop).state is S.BROWSING

    bot.send(event_loop, CUSTOMER, cart(("shirt", 2, "20"), ("saree", 1, "100")))
    session = bot.session(event_loop)
    assert session.state is S.BROWSING
    assert "Total: ₹140" in bot.notifier.to(CUSTOMER)[-1].body

    bot.send(event_loop, CUSTOMER, button("checkout"))
    assert bot.session(event_loop).state is S.COLLECTING_NAME

    bot.send(event_loop, CUSTOMER, text("Asha"))
    assert bot.session(event_loop).state is S.COLLECTING_ADDRESS

    bot.send(event_loop, CUSTOMER, text("12 MG Road"))
    assert bot.session(event_loop).state is S.COLLECTING_PAYMENT

    bot.send(event_loop, CUSTOMER, text("cash"))
    assert bot.session(event_loop).state is S.CONFIRMING
    summary = bot.notifier.to(CUSTOMER)[-1].body
    assert "Total: ₹140" in summary
    assert "Payment: cash" in summary

    bot.send(event_loop, CUSTOMER, button("place_order"))
    assert bot.session(event_loop).state is S.INITIAL
    assert bot.session(event_loop).cart == {}

    [order] = bot.store.orders.values()
    assert order.status is O.PENDING_VENDOR_CONFIRMATION
    assert order.total == Decimal("140")
    assert order.customer_name == "Asha"
    assert order.address == "12 MG Road"
    assert bot.notifier.to(VENDOR)[-1].option_ids[0] == f"accept_{order.order_number}"


def test_empty_cart_never_leaves_browsing(event_loop, bot):
    bot.send(event_loop, CUSTOMER, text("order"))
    for _ in range(2):
        bot.send(event_loop, CUSTOMER, button("checkout"))
        assert bot.session(event_loop).state is S.BROWSING
    bot.send(event_loop, CUSTOMER, cart(("shirt", 0, "20")))
    bot.send(event_loop, CUSTOMER, button("checkout"))
    assert bot.session(event_loop).state is S.BROWSING


# ---------------------------------------------------------------------------
# Scenario B / C through the router
# ---------------------------------------------------------------------------

def test_vendor_reject_releases_customer_session(event_loop, bot):
    bot.send(event_loop, CUSTOMER, cart(("shirt", 1, "20")))
    seed_order(bot.store, O.PENDING_VENDOR_CONFIRMATION)

    bot.send(event_loop, VENDOR, button("reject_ORD123"))

    assert bot.store.orders["ORD123"].status is O.VENDOR_REJECTED
    assert bot.session(event_loop).state is S.INITIAL
    assert bot.session(event_loop).cart == {}
    assert len(bot.notifier.to(ADMIN)) == 1

    sent_before = len(bot.notifier.sent)
    bot.send(event_loop, VENDOR, button("reject_ORD123"))
    assert [s.to for s in bot.notifier.sent[sent_before:]] == [VENDOR]


def test_delivery_and_feedback(event_loop, bot):
    seed_order(bot.store, O.OUT_FOR_DELIVERY, delivery_partner_id=PARTNER)

    bot.send(event_loop, PARTNER, button("delivered_ORD123"))
    assert bot.store.orders["ORD123"].status is O.DELIVERED
    assert bot.notifier.to(CUSTOMER)[-1].option_ids[0] == "feedback_5_ORD123"

    bot.send(event_loop, CUSTOMER, text("feedback 5 ORD123"))
    order = bot.store.orders["ORD123"]
    assert order.status is O.COMPLETED
    assert order.rating == 5


def test_feedback_before_delivery_is_rejected(event_loop, bot):
    seed_order(bot.store, O.OUT_FOR_DELIVERY, delivery_partner_id=PARTNER)
    bot.send(event_loop, CUSTOMER, button("feedback_3_ORD123"))
    assert bot.store.orders["ORD123"].status is O.OUT_FOR_DELIVERY
    assert bot.store.orders["ORD123"].rating is None


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

def test_operator_never_enters_customer_dialog(event_loop, bot):
    bot.send(event_loop, VENDOR, text("hi"))
    assert len(bot.session_store) == 0
    assert "Commands: accept" in bot.notifier.to(VENDOR)[0].body


def test_operator_sending_a_cart_gets_help(event_loop, bot):
    bot.send(event_loop, PARTNER, cart(("shirt", 1, "20")))
    assert len(bot.session_store) == 0
    assert len(bot.notifier.to(PARTNER)) == 1


def test_unverified_customer_is_turned_away(event_loop):
    bot = build_bot(require_verified=True, verified=["919900000002"])
    bot.send(event_loop, CUSTOMER, text("hi"))
    assert "isn't registered" in bot.notifier.to(CUSTOMER)[0].body
    assert len(bot.session_store) == 0

    bot.send(event_loop, "+919900000002", text("hi"))
    assert len(bot.session_store) == 1


def test_redelivered_message_is_dropped(event_loop, bot):
    assert bot.send(event_loop, CUSTOMER, text("hi", message_id="wamid.1")) is True
    sent = len(bot.notifier.sent)
    assert bot.send(event_loop, CUSTOMER, text("hi", message_id="wamid.1")) is False
    assert len(bot.notifier.sent) == sent


def test_handle_inbound_event_accepts_dict_and_never_raises(event_loop, bot):
    event_loop.run_until_complete(
        bot.router.handle_inbound_event(CUSTOMER, {"kind": "text", "text": "hi"})
    )
    assert bot.session(event_loop).state is S.BROWSING

    event_loop.run_until_complete(bot.router.handle_inbound_event(CUSTOMER, {"kind": "bogus"}))


def test_notification_failure_does_not_break_the_flow(event_loop, bot):
    bot.notifier.fail_next(CUSTOMER, 5)
    bot.send(event_loop, CUSTOMER, text("hi"))
    assert bot.session(event_loop).state is S.BROWSING
    assert bot.dead_letters.records


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

@dataclass
class _Product:
    name: str
    price: Decimal


class SlowCatalog:
    """Yields to the loop during every lookup and records overlap."""

    def __init__(self):
        self.active = 0
        self.max_active = 0

    async def product_details(self, product_id):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return _Product(product_id.title(), Decimal("10"))


def test_same_customer_events_are_serialised(event_loop):
    bot = build_bot()
    slow = SlowCatalog()
    bot.router.conversation.catalog = slow

    async def burst():
        await asyncio.gather(
            bot.router.route(CUSTOMER, cart(("a", 1, "10"))),
            bot.router.route(CUSTOMER, cart(("b", 2, "10"))),
            bot.router.route(CUSTOMER, cart(("a", 3, "10"))),
        )

    event_loop.run_until_complete(burst())

    session = bot.session(event_loop)
    assert slow.max_active == 1
    assert session.cart["a"].quantity == 4
    assert session.cart["b"].quantity == 2
    assert len(bot.router.sessions.locks) == 0


def test_different_customers_run_concurrently(event_loop):
    bot = build_bot()
    slow = SlowCatalog()
    bot.router.conversation.catalog = slow

    async def burst():
        await asyncio.gather(
            bot.router.route(CUSTOMER, cart(("a", 1, "10"))),
            bot.router.route("919900000009", cart(("b", 1, "10"))),
        )

    event_loop.run_until_complete(burst())
    assert slow.max_active == 2


def test_keyed_lock_is_fifo_and_reaped(event_loop):
    locks = KeyedLock()
    order = []

    async def worker(name, delay):
        await asyncio.sleep(delay)
        async with locks.hold("k"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    async def run():
        await asyncio.gather(worker("first", 0), worker("second", 0.001), worker("third", 0.002))

    event_loop.run_until_complete(run())
    assert order == ["first-in", "first-out", "second-in", "second-out", "third-in", "third-out"]
    assert not locks.is_active("k")
    assert len(locks) == 0


def test_unsupported_event_reprompts(event_loop, bot):
    bot.send(event_loop, CUSTOMER, InboundEvent(kind=EventKind.UNSUPPORTED))
    assert bot.session(event_loop).state is S.INITIAL
    assert bot.notifier.to(CUSTOMER)[0].option_ids == ["order_now", "contact_us", "help"]


# ---------------------------------------------------------------------------
# Session backend failures
# ---------------------------------------------------------------------------

def _to_confirming(loop, bot):
    for event in (
        text("hi"),
        cart(("shirt", 1, "20")),
        button("checkout"),
        text("Asha"),
        text("12 MG Road"),
        text("cash"),
    ):
        bot.send(loop, CUSTOMER, event)
    assert bot.session(loop).state is S.CONFIRMING


def test_failed_commit_after_submit_does_not_duplicate_order(event_loop):
    store = FlakySessionStore()
    bot = build_bot(session_store=store)
    _to_confirming(event_loop, bot)

    store.fail_saves = 1
    bot.send(event_loop, CUSTOMER, button("place_order"))
    assert len(bot.store.orders) == 1
    assert bot.notifier.to(VENDOR)

    bot.send(event_loop, CUSTOMER, button("place_order"))
    assert len(bot.store.orders) == 1
    assert bot.session(event_loop).state is not S.CONFIRMING


def test_stale_session_starts_fresh_when_clear_also_fails(event_loop):
    store = FlakySessionStore()
    bot = build_bot(session_store=store)
    _to_confirming(event_loop, bot)

    store.fail_saves = 1
    store.fail_clears = 1
    bot.send(event_loop, CUSTOMER, button("place_order"))

    # The backend still holds the CONFIRMING copy but it is never served again.
    assert event_loop.run_until_complete(store.get(CUSTOMER)).state is S.CONFIRMING
    assert bot.session(event_loop).state is S.INITIAL

    bot.send(event_loop, CUSTOMER, button("place_order"))
    assert len(bot.store.orders) == 1

    bot.send(event_loop, CUSTOMER, text("hi"))
    assert event_loop.run_until_complete(store.get(CUSTOMER)).state is S.BROWSING


def test_failed_commit_without_order_asks_to_retry(event_loop):
    store = FlakySessionStore(fail_saves=1)
    bot = build_bot(session_store=store)

    bot.send(event_loop, CUSTOMER, text("hi"))

    [reply] = bot.notifier.to(CUSTOMER)
    assert "Please try again" in reply.body
    assert bot.session(event_loop).state is S.INITIAL
    assert len(store) == 0
