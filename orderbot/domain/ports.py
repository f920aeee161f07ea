"""
Interfaces of the collaborators the core depends on.

The concrete adapters live under ``orderbot.infrastructure``; tests use
in-memory fakes that satisfy the same protocols.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, Sequence

from orderbot.domain.models import (
    CasResult,
    ChoiceOption,
    Operator,
    Order,
    OrderStatus,
    Role,
    Session,
)


class ProductDetails(Protocol):
    name: str
    price: Decimal


class IdentityResolver(Protocol):
    def role_of(self, identifier: str) -> Role: ...

    def is_verified_customer(self, identifier: str) -> bool: ...


class CatalogLookup(Protocol):
    async def product_details(self, product_id: str) -> ProductDetails:
        """Return name/price for a product; raise CatalogLookupError on failure."""
        ...


class OrderStore(Protocol):
    async def create(self, order: Order) -> Order: ...

    async def get_by_number(self, order_number: str) -> Optional[Order]: ...

    async def compare_and_set_status(
        self,
        order_number: str,
        expected: OrderStatus,
        new: OrderStatus,
        patch: Optional[dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> CasResult: ...

    async def list_for_customer(
        self,
        customer_id: str,
        statuses: Optional[Sequence[OrderStatus]] = None,
    ) -> list[Order]: ...


class Notifier(Protocol):
    async def send_text(self, to: str, body: str) -> None: ...

    async def send_choice(self, to: str, body: str, options: Sequence[ChoiceOption]) -> None: ...

    async def send_catalog_prompt(self, to: str, body: str) -> None: ...

    async def send_location_request(self, to: str, body: str) -> None: ...


class OperatorDirectory(Protocol):
    async def available_vendors(self) -> list[Operator]: ...

    async def available_delivery_partners(self) -> list[Operator]: ...


class SessionStore(Protocol):
    async def get(self, customer_id: str) -> Optional[Session]: ...

    async def save(self, session: Session) -> None: ...

    async def clear(self, customer_id: str) -> None: ...


class DeadLetterSink(Protocol):
    async def record(self, to: str, payload: str, reason: str, last_error: Optional[str], attempts: int) -> None: ...
