"""In-memory fakes and a fully wired bot for the test suite."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from orderbot.domain.errors import CatalogLookupError, NotificationError, OrderStoreError, SessionStoreError
from orderbot.domain.models import (
    CasOutcome,
    CasResult,
    EventKind,
    InboundEvent,
    Operator,
    Order,
    OrderStatus,
    Role,
    Selection,
)
from orderbot.domain.services.conversation_service import ConversationService
from orderbot.domain.services.event_router import EventRouter
from orderbot.domain.services.identity import DirectoryIdentityResolver
from orderbot.domain.services.notification_service import NotificationDispatcher
from orderbot.domain.services.order_workflow import OrderNumberGenerator, OrderWorkflow
from orderbot.domain.services.session_manager import SessionManager
from orderbot.infrastructure.cache.session_cache import InMemorySessionStore

CUSTOMER = "919900000001"
VENDOR = "919800000001"
PARTNER = "919700000001"
ADMIN = "919600000001"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

@dataclass
class Product:
    name: str
    price: Decimal


class FakeCatalog:
    def __init__(self, products: Optional[dict[str, tuple[str, str]]] = None):
        self.products = {
            pid: Product(name, Decimal(price))
            for pid, (name, price) in (products or {}).items()
        }
        self.calls: list[str] = []

    async def product_details(self, product_id: str) -> Product:
        self.calls.append(product_id)
        if product_id not in self.products:
            raise CatalogLookupError(f"unknown product {product_id}")
        return self.products[product_id]


class InMemoryOrderStore:
    PATCHABLE = {"delivery_partner_id", "delivery_partner_name", "rating"}

    def __init__(self):
        self.orders: dict[str, Order] = {}
        self.fail_writes = False
        self.fail_reads = False
        # 1-based compare-and-set call numbers that raise
        self.fail_cas_calls: set[int] = set()
        self.cas_calls = 0
        self.history: list[tuple[str, Optional[OrderStatus], OrderStatus]] = []

    async def create(self, order: Order) -> Order:
        if self.fail_writes:
            raise OrderStoreError("database unavailable")
        self.orders[order.order_number] = order
        self.history.append((order.order_number, None, order.status))
        return order

    async def get_by_number(self, order_number: str) -> Optional[Order]:
        if self.fail_reads:
            raise OrderStoreError("database unavailable")
        return self.orders.get(order_number)

    async def compare_and_set_status(
        self,
        order_number: str,
        expected: OrderStatus,
        new: OrderStatus,
        patch: Optional[dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> CasResult:
        self.cas_calls += 1
        if self.fail_writes or self.cas_calls in self.fail_cas_calls:
            raise OrderStoreError("database unavailable")
        order = self.orders.get(order_number)
        if order is None:
            return CasResult(outcome=CasOutcome.NOT_FOUND)
        if order.status is not expected:
            return CasResult(outcome=CasOutcome.CONFLICT, order=order)
        assert set(patch or {}) <= self.PATCHABLE
        updated = order.model_copy(update={"status": new, **(patch or {})})
        self.orders[order_number] = updated
        self.history.append((order_number, expected, new))
        return CasResult(outcome=CasOutcome.SUCCESS, order=updated)

    async def list_for_customer(self, customer_id, statuses=None):
        return [
            o for o in self.orders.values()
            if o.customer_id == customer_id and (not statuses or o.status in statuses)
        ]


@dataclass
class Sent:
    kind: str
    to: str
    body: str
    options: tuple = ()

    @property
    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]


class RecordingNotifier:
    def __init__(self):
        self.sent: list[Sent] = []
        self.failures: dict[str, int] = {}

    def fail_next(self, to: str, times: int) -> None:
        self.failures[to] = times

    def _record(self, kind, to, body, options=()):
        remaining = self.failures.get(to, 0)
        if remaining:
            self.failures[to] = remaining - 1
            raise NotificationError(f"gateway down for {to}")
        self.sent.append(Sent(kind, to, body, tuple(options)))

    async def send_text(self, to, body):
        self._record("text", to, body)

    async def send_choice(self, to, body, options):
        self._record("choice", to, body, options)

    async def send_catalog_prompt(self, to, body):
        self._record("catalog", to, body)

    async def send_location_request(self, to, body):
        self._record("location_request", to, body)

    def to(self, recipient: str) -> list[Sent]:
        return [s for s in self.sent if s.to == recipient]

    def clear(self) -> None:
        self.sent.clear()


class FakeDirectory:
    def __init__(self, vendors=None, partners=None):
        self.vendors = list(vendors if vendors is not None else [Operator(phone=VENDOR, name="Main Vendor", role=Role.VENDOR)])
        self.partners = list(
            partners if partners is not None
            else [Operator(phone=PARTNER, name="Ravi", role=Role.DELIVERY_PARTNER)]
        )

    async def available_vendors(self):
        return list(self.vendors)

    async def available_delivery_partners(self):
        return list(self.partners)


class FlakySessionStore(InMemorySessionStore):
    """Session store whose next N saves or clears fail."""

    def __init__(self, fail_saves: int = 0, fail_clears: int = 0):
        super().__init__()
        self.fail_saves = fail_saves
        self.fail_clears = fail_clears

    async def save(self, session):
        if self.fail_saves:
            self.fail_saves -= 1
            raise SessionStoreError("redis down")
        await super().save(session)

    async def clear(self, customer_id):
        if self.fail_clears:
            self.fail_clears -= 1
            raise SessionStoreError("redis down")
        await super().clear(customer_id)


class FakeDeadLetters:
    def __init__(self):
        self.records: list[dict] = []

    async def record(self, to, payload, reason, last_error, attempts):
        self.records.append(
            dict(to=to, payload=payload, reason=reason, last_error=last_error, attempts=attempts)
        )


async def _no_sleep(seconds: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Assembled bot
# ---------------------------------------------------------------------------

@dataclass
class Bot:
    router: EventRouter
    workflow: OrderWorkflow
    store: InMemoryOrderStore
    notifier: RecordingNotifier
    directory: FakeDirectory
    sessions: SessionManager
    session_store: InMemorySessionStore
    dead_letters: FakeDeadLetters

    def send(self, loop, sender: str, event: InboundEvent) -> bool:
        return loop.run_until_complete(self.router.route(sender, event))

    def session(self, loop, customer_id: str = CUSTOMER):
        return loop.run_until_complete(self.sessions.load(customer_id))


def build_bot(
    *,
    catalog: Optional[FakeCatalog] = None,
    directory: Optional[FakeDirectory] = None,
    require_verified: bool = False,
    verified=(),
    clock=None,
    session_store: Optional[InMemorySessionStore] = None,
) -> Bot:
    store = InMemoryOrderStore()
    notifier = RecordingNotifier()
    directory = directory or FakeDirectory()
    dead_letters = FakeDeadLetters()
    dispatcher = NotificationDispatcher(
        notifier, max_attempts=3, backoff_seconds=0, dead_letters=dead_letters, sleep=_no_sleep
    )
    if session_store is None:
        session_store = InMemorySessionStore()
    sessions = SessionManager(session_store)
    workflow = OrderWorkflow(
        store,
        directory,
        dispatcher,
        admin_ids=[ADMIN],
        eta_minutes=15,
        session_releaser=sessions.release,
        numbers=OrderNumberGenerator(clock=clock) if clock else None,
    )
    conversation = ConversationService(
        catalog or FakeCatalog({"shirt": ("Shirt", "20"), "saree": ("Saree", "100")}),
        workflow,
        store,
        support_contact="support@example.com",
    )
    identity = DirectoryIdentityResolver(
        admins=[ADMIN],
        vendors=[VENDOR],
        delivery_partners=[PARTNER],
        verified_customers=verified,
    )
    router = EventRouter(
        identity,
        sessions,
        conversation,
        workflow,
        dispatcher,
        require_verified=require_verified,
        support_contact="support@example.com",
    )
    return Bot(router, workflow, store, notifier, directory, sessions, session_store, dead_letters)


# ---------------------------------------------------------------------------
# Event helpers
# ---------------------------------------------------------------------------

def text(body: str, message_id: Optional[str] = None) -> InboundEvent:
    return InboundEvent(kind=EventKind.TEXT, text=body, message_id=message_id)


def button(button_id: str, title: str = "", message_id: Optional[str] = None) -> InboundEvent:
    return InboundEvent(kind=EventKind.BUTTON, button_id=button_id, text=title, message_id=message_id)


def cart(*items: tuple[str, int, str]) -> InboundEvent:
    return InboundEvent(
        kind=EventKind.CART,
        selections=tuple(
            Selection(product_id=pid, quantity=qty, unit_price_hint=Decimal(price))
            for pid, qty, price in items
        ),
    )


def seed_order(store: InMemoryOrderStore, status: OrderStatus, **overrides) -> Order:
    fields = dict(
        order_number="ORD123",
        customer_id=CUSTOMER,
        items=(),
        total=Decimal("140"),
        status=status,
        customer_name="Asha",
        address="12 MG Road",
        vendor_id=VENDOR,
        vendor_name="Main Vendor",
    )
    fields.update(overrides)
    order = Order(**fields)
    store.orders[order.order_number] = order
    return order
