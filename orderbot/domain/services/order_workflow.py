# orderbot/domain/services/order_workflow.py
"""
Order Lifecycle Workflow Engine.

Manages the status lifecycle of an order:
  PENDING_VENDOR_CONFIRMATION → VENDOR_ACCEPTED → AWAITING_PICKUP
  → PROCESSING → OUT_FOR_DELIVERY → DELIVERED → COMPLETED
with the side branch PENDING_VENDOR_CONFIRMATION → VENDOR_REJECTED.

Every status change goes through the store's compare-and-set, so a replayed
or racing operator event finds the order in a different status and is only
acknowledged back to its sender; it never re-fires customer notifications.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from orderbot.domain.errors import (
    InvalidOrderTransitionError,
    NoVendorAvailableError,
    OrderStoreError,
)
from orderbot.domain.i18n import status_label, t
from orderbot.domain.models import (
    CartLine,
    ChoiceOption,
    Operator,
    OperatorAction,
    OperatorActionKind,
    Order,
    OrderStatus,
    OutboundMessage,
    Profile,
    Role,
)
from orderbot.domain.ports import OperatorDirectory, OrderStore
from orderbot.domain.services import cart_service
from orderbot.domain.services.notification_service import (
    NotificationDispatcher,
    choice_message,
    text_message,
)
from orderbot.domain.services.vendor_assignment import FirstAvailableVendorPolicy, VendorPolicy

logger = logging.getLogger("order_workflow")

O = OrderStatus


# ---------------------------------------------------------------------------
# Valid state transitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    O.PENDING_VENDOR_CONFIRMATION: [O.VENDOR_ACCEPTED, O.VENDOR_REJECTED],
    O.VENDOR_ACCEPTED: [O.AWAITING_PICKUP, O.PROCESSING],
    O.AWAITING_PICKUP: [O.PROCESSING],
    O.PROCESSING: [O.OUT_FOR_DELIVERY],
    O.OUT_FOR_DELIVERY: [O.DELIVERED],
    O.DELIVERED: [O.COMPLETED],
    O.VENDOR_REJECTED: [],  # terminal
    O.COMPLETED: [],  # terminal
}

ALL_STATUSES = set(VALID_TRANSITIONS.keys())

OPEN_STATUSES = tuple(status for status, targets in VALID_TRANSITIONS.items() if targets)


def validate_transition(current_status: OrderStatus, new_status: OrderStatus) -> None:
    """Raise InvalidOrderTransitionError if the transition is not allowed."""
    allowed = VALID_TRANSITIONS.get(current_status, [])
    if new_status not in allowed:
        raise InvalidOrderTransitionError(
            f"Cannot transition from '{current_status.value}' to '{new_status.value}'. "
            f"Allowed: {[s.value for s in allowed]}"
        )


class OrderNumberGenerator:
    """``ORD-<epoch ms>``, strictly increasing within one process."""

    def __init__(self, clock: Callable[[], float] = time.time, prefix: str = "ORD") -> None:
        self._clock = clock
        self._prefix = prefix
        self._last = 0

    def next(self) -> str:
        value = max(int(self._clock() * 1000), self._last + 1)
        self._last = value
        return f"{self._prefix}-{value}"


RATING_OPTIONS = (
    (5, "⭐⭐⭐⭐⭐ Excellent"),
    (4, "⭐⭐⭐⭐ Good"),
    (3, "⭐⭐⭐ Average"),
    (2, "⭐⭐ Poor"),
    (1, "⭐ Very poor"),
)


def rating_options(order_number: str) -> tuple[ChoiceOption, ...]:
    return tuple(
        ChoiceOption(id=f"feedback_{score}_{order_number}", title=title)
        for score, title in RATING_OPTIONS
    )


# ---------------------------------------------------------------------------
# Workflow operations
# ---------------------------------------------------------------------------

class OrderWorkflow:
    open_statuses = OPEN_STATUSES

    def __init__(
        self,
        store: OrderStore,
        directory: OperatorDirectory,
        dispatcher: NotificationDispatcher,
        *,
        vendor_policy: Optional[VendorPolicy] = None,
        admin_ids: Iterable[str] = (),
        eta_minutes: int = 15,
        currency_symbol: str = "₹",
        session_releaser: Optional[Callable[[str], Awaitable[None]]] = None,
        numbers: Optional[OrderNumberGenerator] = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.dispatcher = dispatcher
        self.vendor_policy = vendor_policy or FirstAvailableVendorPolicy()
        self.admin_ids = tuple(admin_ids)
        self.eta_minutes = eta_minutes
        self.currency_symbol = currency_symbol
        self.session_releaser = session_releaser
        self.numbers = numbers or OrderNumberGenerator()

    # -- helpers -----------------------------------------------------------

    def _money(self, amount: Decimal) -> str:
        return cart_service.format_money(amount, self.currency_symbol)

    async def _send(self, messages: Sequence[OutboundMessage]) -> None:
        await self.dispatcher.dispatch_all(messages)

    async def _ack(self, to: str, key: str, **kwargs: Any) -> None:
        await self.dispatcher.text(to, t(key, **kwargs))

    async def _already_handled(self, to: str, order: Order) -> None:
        logger.info(
            "Ignoring duplicate event for %s in status %s", order.order_number, order.status.value
        )
        await self._ack(
            to, "ALREADY_HANDLED", order_number=order.order_number, status=status_label(order.status)
        )

    async def _move(
        self,
        order: Order,
        new_status: OrderStatus,
        *,
        actor_id: Optional[str] = None,
        patch: Optional[dict[str, Any]] = None,
    ) -> tuple[bool, Order]:
        """Compare-and-set ``order.status → new_status``.

        Returns ``(moved, order)``; on a lost race ``order`` is the current
        version when the store could provide it.
        """
        validate_transition(order.status, new_status)
        result = await self.store.compare_and_set_status(
            order.order_number, order.status, new_status, patch, actor_id=actor_id
        )
        if result.ok and result.order is not None:
            logger.info(
                "Order %s: %s -> %s (by %s)",
                order.order_number, order.status.value, new_status.value, actor_id or "system",
            )
            return True, result.order
        logger.info(
            "Order %s: %s -> %s lost (%s)",
            order.order_number, order.status.value, new_status.value, result.outcome.value,
        )
        return False, result.order or order

    @staticmethod
    def _is_vendor_of(order: Order, sender_id: str, role: Role) -> bool:
        return role is Role.ADMIN or (role is Role.VENDOR and order.vendor_id == sender_id)

    @staticmethod
    def _is_partner_of(order: Order, sender_id: str, role: Role, *, unclaimed_ok: bool = False) -> bool:
        if role is Role.ADMIN:
            return True
        if role is not Role.DELIVERY_PARTNER:
            return False
        if order.delivery_partner_id is None:
            return unclaimed_ok
        return order.delivery_partner_id == sender_id

    # -- creation ----------------------------------------------------------

    async def create(self, customer_id: str, lines: Sequence[CartLine], profile: Profile) -> Order:
        """Persist a new order, route it to a vendor and notify both parties.

        Raises NoVendorAvailableError or OrderStoreError; in both cases the
        order is not placed.
        """
        vendors = await self.directory.available_vendors()
        vendor = self.vendor_policy.choose(vendors, profile)
        if vendor is None:
            raise NoVendorAvailableError(f"No vendor available for {customer_id}")

        items = tuple(lines)
        order = Order(
            order_number=self.numbers.next(),
            customer_id=customer_id,
            items=items,
            total=sum((line.line_total for line in items), Decimal("0")),
            customer_name=profile.name,
            address=profile.address,
            payment_method=profile.payment_method,
            latitude=profile.latitude,
            longitude=profile.longitude,
            vendor_id=vendor.phone,
            vendor_name=vendor.name,
        )
        order = await self.store.create(order)
        logger.info(
            "Order %s created for %s, routed to vendor %s (%s)",
            order.order_number, customer_id, vendor.phone, self.vendor_policy.name,
        )

        number = order.order_number
        await self._send([
            choice_message(
                vendor.phone,
                t(
                    "VENDOR_NEW_ORDER",
                    order_number=number,
                    items=cart_service.format_lines(order.items, self.currency_symbol),
                    total=self._money(order.total),
                    address=order.address or "",
                ),
                (
                    ChoiceOption(id=f"accept_{number}", title="Accept"),
                    ChoiceOption(id=f"reject_{number}", title="Reject"),
                ),
            ),
            text_message(customer_id, t("ORDER_PLACED", order_number=number, vendor=vendor.name)),
        ])
        return order

    # -- operator events ---------------------------------------------------

    async def handle_operator_action(
        self, sender_id: str, role: Role, action: OperatorAction
    ) -> Optional[Order]:
        """Apply one operator command; the sender always gets a reply."""
        handler = {
            OperatorActionKind.ACCEPT: self.accept,
            OperatorActionKind.REJECT: self.reject,
            OperatorActionKind.PICKED_UP: self.picked_up,
            OperatorActionKind.OUT_FOR_DELIVERY: self.out_for_delivery,
            OperatorActionKind.DELIVERED: self.delivered,
        }[action.kind]

        try:
            order = await self.store.get_by_number(action.order_number)
            if order is None:
                logger.info("Operator %s named unknown order %s", sender_id, action.order_number)
                await self._ack(sender_id, "ORDER_NOT_FOUND", order_number=action.order_number)
                return None
            return await handler(order, sender_id, role)
        except OrderStoreError as exc:
            logger.error(
                "%s %s on %s failed: %s", action.kind.value, sender_id, action.order_number, exc
            )
            await self._ack(sender_id, "OPERATOR_RETRY", order_number=action.order_number)
            return None

    async def accept(self, order: Order, sender_id: str, role: Role) -> Optional[Order]:
        if not self._is_vendor_of(order, sender_id, role):
            await self._ack(sender_id, "NOT_ASSIGNED", order_number=order.order_number)
            return None
        if order.status is not O.PENDING_VENDOR_CONFIRMATION:
            await self._already_handled(sender_id, order)
            return None

        moved, order = await self._move(order, O.VENDOR_ACCEPTED, actor_id=sender_id)
        if not moved:
            await self._already_handled(sender_id, order)
            return None

        number = order.order_number
        customer_body = t("CUSTOMER_ACCEPTED", vendor=order.vendor_name or "", order_number=number)
        messages: list[OutboundMessage] = []

        # The acceptance is committed; from here on the fan-out always goes out.
        partner = await self._first_partner()
        if partner is not None:
            try:
                assigned, current = await self._move(
                    order,
                    O.AWAITING_PICKUP,
                    actor_id=sender_id,
                    patch={"delivery_partner_id": partner.phone, "delivery_partner_name": partner.name},
                )
            except OrderStoreError as exc:
                logger.error("Delivery partner assignment failed for %s: %s", order.order_number, exc)
                assigned = False
            if assigned:
                order = current
                customer_body += "\n\n" + t("CUSTOMER_DP_ASSIGNED", partner=partner.name)
                messages.append(
                    choice_message(
                        partner.phone,
                        t("DP_TASK", order_number=number, vendor=order.vendor_name or "", address=order.address or ""),
                        (ChoiceOption(id=f"picked_up_{number}", title="Picked Up"),),
                    )
                )
            else:
                partner = None

        if partner is None:
            customer_body += "\n\n" + t("CUSTOMER_DP_PENDING")
            messages.extend(
                text_message(admin, t("ADMIN_NO_DP", order_number=number, vendor=order.vendor_name or ""))
                for admin in self.admin_ids
            )

        messages.insert(0, text_message(order.customer_id, customer_body))
        messages.append(
            text_message(sender_id, t("OPERATOR_ACK", order_number=number, status=status_label(order.status)))
        )
        await self._send(messages)
        return order

    async def _first_partner(self) -> Optional[Operator]:
        try:
            partners = await self.directory.available_delivery_partners()
        except OrderStoreError as exc:
            logger.error("Delivery partner lookup failed: %s", exc)
            return None
        return partners[0] if partners else None

    async def reject(self, order: Order, sender_id: str, role: Role) -> Optional[Order]:
        if not self._is_vendor_of(order, sender_id, role):
            await self._ack(sender_id, "NOT_ASSIGNED", order_number=order.order_number)
            return None
        if order.status is not O.PENDING_VENDOR_CONFIRMATION:
            await self._already_handled(sender_id, order)
            return None

        moved, order = await self._move(order, O.VENDOR_REJECTED, actor_id=sender_id)
        if not moved:
            await self._already_handled(sender_id, order)
            return None

        if self.session_releaser is not None:
            await self.session_releaser(order.customer_id)

        number = order.order_number
        vendor = order.vendor_name or ""
        messages = [text_message(order.customer_id, t("CUSTOMER_REJECTED", vendor=vendor, order_number=number))]
        messages.extend(
            text_message(
                admin,
                t("ADMIN_REJECTED", order_number=number, customer=order.customer_id, vendor=vendor),
            )
            for admin in self.admin_ids
        )
        messages.append(
            text_message(sender_id, t("OPERATOR_ACK", order_number=number, status=status_label(order.status)))
        )
        await self._send(messages)
        return order

    async def picked_up(self, order: Order, sender_id: str, role: Role) -> Optional[Order]:
        if not self._is_partner_of(order, sender_id, role, unclaimed_ok=True):
            await self._ack(sender_id, "NOT_ASSIGNED", order_number=order.order_number)
            return None
        if order.status not in (O.VENDOR_ACCEPTED, O.AWAITING_PICKUP):
            await self._already_handled(sender_id, order)
            return None

        patch = None
        if order.delivery_partner_id is None and role is Role.DELIVERY_PARTNER:
            patch = {
                "delivery_partner_id": sender_id,
                "delivery_partner_name": await self._partner_name(sender_id),
            }

        moved, order = await self._move(order, O.PROCESSING, actor_id=sender_id, patch=patch)
        if not moved:
            await self._already_handled(sender_id, order)
            return None

        number = order.order_number
        await self._send([
            text_message(order.customer_id, t("TIMELINE_PICKED_UP", order_number=number)),
            choice_message(
                sender_id,
                t("DP_NEXT_OUT", order_number=number),
                (ChoiceOption(id=f"out_for_delivery_{number}", title="Out for Delivery"),),
            ),
        ])
        return order

    async def _partner_name(self, phone: str) -> str:
        try:
            partners = await self.directory.available_delivery_partners()
        except OrderStoreError:
            return phone
        return next((p.name for p in partners if p.phone == phone), phone)

    async def out_for_delivery(self, order: Order, sender_id: str, role: Role) -> Optional[Order]:
        if not self._is_partner_of(order, sender_id, role):
            await self._ack(sender_id, "NOT_ASSIGNED", order_number=order.order_number)
            return None
        if order.status is not O.PROCESSING:
            await self._already_handled(sender_id, order)
            return None

        moved, order = await self._move(order, O.OUT_FOR_DELIVERY, actor_id=sender_id)
        if not moved:
            await self._already_handled(sender_id, order)
            return None

        number = order.order_number
        await self._send([
            text_message(order.customer_id, t("TIMELINE_OUT_FOR_DELIVERY", eta=self.eta_minutes)),
            choice_message(
                sender_id,
                t("DP_NEXT_DELIVERED", order_number=number),
                (ChoiceOption(id=f"delivered_{number}", title="Delivered"),),
            ),
        ])
        return order

    async def delivered(self, order: Order, sender_id: str, role: Role) -> Optional[Order]:
        if not self._is_partner_of(order, sender_id, role):
            await self._ack(sender_id, "NOT_ASSIGNED", order_number=order.order_number)
            return None
        if order.status is not O.OUT_FOR_DELIVERY:
            await self._already_handled(sender_id, order)
            return None

        moved, order = await self._move(order, O.DELIVERED, actor_id=sender_id)
        if not moved:
            await self._already_handled(sender_id, order)
            return None

        number = order.order_number
        await self._send([
            text_message(order.customer_id, t("TIMELINE_DELIVERED")),
            choice_message(order.customer_id, t("RATING_PROMPT", order_number=number), rating_options(number)),
            text_message(sender_id, t("OPERATOR_ACK", order_number=number, status=status_label(order.status))),
        ])
        return order

    # -- customer feedback -------------------------------------------------

    async def submit_feedback(self, customer_id: str, order_number: str, rating: int) -> Optional[Order]:
        """Attach a 1-5 rating to a delivered order and complete it."""
        order = await self.store.get_by_number(order_number)
        if order is None or order.customer_id != customer_id:
            await self._ack(customer_id, "ORDER_NOT_FOUND", order_number=order_number)
            return None
        if order.status is not O.DELIVERED:
            await self._ack(
                customer_id, "FEEDBACK_REJECTED",
                order_number=order_number, status=status_label(order.status),
            )
            return None

        moved, order = await self._move(order, O.COMPLETED, actor_id=customer_id, patch={"rating": rating})
        if not moved:
            await self._ack(
                customer_id, "FEEDBACK_REJECTED",
                order_number=order_number, status=status_label(order.status),
            )
            return None

        await self._ack(customer_id, "FEEDBACK_THANKS", order_number=order_number, rating=rating)
        return order
