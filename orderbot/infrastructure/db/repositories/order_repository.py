# orderbot/infrastructure/db/repositories/order_repository.py

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orderbot.domain.errors import ForbiddenPatchError
from orderbot.domain.models import (
    CartLine,
    CasOutcome,
    CasResult,
    Order,
    OrderStatus,
    PaymentMethod,
)
from orderbot.infrastructure.db.models import OrderEvent, OrderRecord

# Fields a status transition may set; items and total are frozen at creation.
PATCHABLE_FIELDS = frozenset({"delivery_partner_id", "delivery_partner_name", "rating"})


def _items_to_json(items: Sequence[CartLine]) -> list[dict[str, Any]]:
    return [
        {
            "product_id": line.product_id,
            "name": line.name,
            "unit_price": str(line.unit_price),
            "quantity": line.quantity,
        }
        for line in items
    ]


def to_domain(record: OrderRecord) -> Order:
    return Order(
        order_number=record.order_number,
        customer_id=record.customer_id,
        items=tuple(
            CartLine(
                product_id=item["product_id"],
                name=item["name"],
                unit_price=Decimal(item["unit_price"]),
                quantity=int(item["quantity"]),
            )
            for item in record.items or []
        ),
        total=Decimal(record.total),
        status=OrderStatus(record.status),
        customer_name=record.customer_name,
        address=record.address,
        payment_method=PaymentMethod(record.payment_method) if record.payment_method else None,
        latitude=record.latitude,
        longitude=record.longitude,
        vendor_id=record.vendor_id,
        vendor_name=record.vendor_name,
        delivery_partner_id=record.delivery_partner_id,
        delivery_partner_name=record.delivery_partner_name,
        rating=record.rating,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class OrderRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, order: Order) -> Order:
        """Insert the order and its first history event."""
        record = OrderRecord(
            order_number=order.order_number,
            customer_id=order.customer_id,
            items=_items_to_json(order.items),
            total=order.total,
            status=order.status.value,
            customer_name=order.customer_name,
            address=order.address,
            payment_method=order.payment_method.value if order.payment_method else None,
            latitude=order.latitude,
            longitude=order.longitude,
            vendor_id=order.vendor_id,
            vendor_name=order.vendor_name,
        )
        self.db.add(record)
        await self.db.flush()
        self.db.add(
            OrderEvent(
                order_id=record.id,
                from_status=None,
                to_status=order.status.value,
                actor_id=order.customer_id,
            )
        )
        await self.db.commit()
        await self.db.refresh(record)
        return to_domain(record)

    async def get_by_number(self, order_number: str) -> Optional[Order]:
        stmt = (
            select(OrderRecord)
            .where(OrderRecord.order_number == order_number)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        record = result.scalar_one_or_none()
        return to_domain(record) if record else None

    async def compare_and_set_status(
        self,
        order_number: str,
        expected: OrderStatus,
        new: OrderStatus,
        patch: Optional[dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> CasResult:
        """Single ``UPDATE ... WHERE status = :expected``; only one racer wins."""
        patch = dict(patch or {})
        forbidden = set(patch) - PATCHABLE_FIELDS
        if forbidden:
            raise ForbiddenPatchError(f"Cannot patch {sorted(forbidden)} on {order_number}")

        stmt = (
            update(OrderRecord)
            .where(
                OrderRecord.order_number == order_number,
                OrderRecord.status == expected.value,
            )
            .values(status=new.value, updated_at=func.now(), **patch)
            .returning(OrderRecord.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        order_id = result.scalar_one_or_none()

        if order_id is None:
            await self.db.rollback()
            current = await self.get_by_number(order_number)
            outcome = CasOutcome.NOT_FOUND if current is None else CasOutcome.CONFLICT
            return CasResult(outcome=outcome, order=current)

        self.db.add(
            OrderEvent(
                order_id=order_id,
                from_status=expected.value,
                to_status=new.value,
                actor_id=actor_id,
            )
        )
        await self.db.commit()
        return CasResult(outcome=CasOutcome.SUCCESS, order=await self.get_by_number(order_number))

    async def list_for_customer(
        self,
        customer_id: str,
        statuses: Optional[Sequence[OrderStatus]] = None,
    ) -> list[Order]:
        stmt = select(OrderRecord).where(OrderRecord.customer_id == customer_id)
        if statuses:
            stmt = stmt.where(OrderRecord.status.in_([s.value for s in statuses]))
        stmt = stmt.order_by(OrderRecord.created_at.desc(), OrderRecord.id.desc())
        result = await self.db.execute(stmt)
        return [to_domain(record) for record in result.scalars().all()]
