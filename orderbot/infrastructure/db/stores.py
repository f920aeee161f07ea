# orderbot/infrastructure/db/stores.py
"""
Port adapters over the repositories.

Each call opens its own ``AsyncSession`` from the factory and maps any
SQLAlchemy failure to ``OrderStoreError`` so the domain never sees driver
exceptions.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderbot.domain.errors import OrderStoreError
from orderbot.domain.models import CasResult, Operator, Order, OrderStatus, Role
from orderbot.infrastructure.db.repositories import (
    OperatorRepository,
    OrderRepository,
    WhatsAppDeadLetterRepository,
)


class SqlOrderStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, order: Order) -> Order:
        try:
            async with self._session_factory() as db:
                return await OrderRepository(db).create(order)
        except SQLAlchemyError as e:
            logger.error("Order insert failed for {}: {}", order.order_number, e)
            raise OrderStoreError(f"Could not store order {order.order_number}") from e

    async def get_by_number(self, order_number: str) -> Optional[Order]:
        try:
            async with self._session_factory() as db:
                return await OrderRepository(db).get_by_number(order_number)
        except SQLAlchemyError as e:
            logger.error("Order lookup failed for {}: {}", order_number, e)
            raise OrderStoreError(f"Could not load order {order_number}") from e

    async def compare_and_set_status(
        self,
        order_number: str,
        expected: OrderStatus,
        new: OrderStatus,
        patch: Optional[dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> CasResult:
        try:
            async with self._session_factory() as db:
                return await OrderRepository(db).compare_and_set_status(
                    order_number, expected, new, patch, actor_id=actor_id
                )
        except SQLAlchemyError as e:
            logger.error(
                "Status update {} -> {} failed for {}: {}",
                expected.value, new.value, order_number, e,
            )
            raise OrderStoreError(f"Could not update order {order_number}") from e

    async def list_for_customer(
        self,
        customer_id: str,
        statuses: Optional[Sequence[OrderStatus]] = None,
    ) -> list[Order]:
        try:
            async with self._session_factory() as db:
                return await OrderRepository(db).list_for_customer(customer_id, statuses)
        except SQLAlchemyError as e:
            logger.error("Order listing failed for {}: {}", customer_id, e)
            raise OrderStoreError(f"Could not list orders for {customer_id}") from e


class SqlOperatorDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def available_vendors(self) -> list[Operator]:
        try:
            async with self._session_factory() as db:
                return await OperatorRepository(db).list_active_vendors()
        except SQLAlchemyError as e:
            logger.error("Vendor lookup failed: {}", e)
            raise OrderStoreError("Could not load vendors") from e

    async def available_delivery_partners(self) -> list[Operator]:
        try:
            async with self._session_factory() as db:
                return await OperatorRepository(db).list_available_partners()
        except SQLAlchemyError as e:
            logger.error("Delivery partner lookup failed: {}", e)
            raise OrderStoreError("Could not load delivery partners") from e

    async def operator_phones(self) -> dict[Role, list[str]]:
        try:
            async with self._session_factory() as db:
                return await OperatorRepository(db).list_operator_phones()
        except SQLAlchemyError as e:
            logger.error("Operator phone lookup failed: {}", e)
            raise OrderStoreError("Could not load operator phones") from e

    async def verified_customer_phones(self) -> list[str]:
        try:
            async with self._session_factory() as db:
                return await OperatorRepository(db).list_verified_phones()
        except SQLAlchemyError as e:
            logger.error("Verified customer lookup failed: {}", e)
            raise OrderStoreError("Could not load verified customers") from e


class SqlDeadLetterSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        to: str,
        payload: str,
        reason: str,
        last_error: Optional[str],
        attempts: int,
    ) -> None:
        async with self._session_factory() as db:
            await WhatsAppDeadLetterRepository(db).add(to, payload, reason, last_error, attempts)
        logger.error("Message to {} moved to dead-letter after {} attempts", to, attempts)
