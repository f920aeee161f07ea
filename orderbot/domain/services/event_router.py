# orderbot/domain/services/event_router.py
"""
Role router: the single entry point for inbound gateway events.

  sender → role → (operator) OrderWorkflow
                → (customer) ConversationService, under the sender's lock

Events for one sender are handled strictly one at a time, in arrival order;
different senders proceed concurrently.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Mapping, Optional, Union

from orderbot.domain.errors import SessionStoreError
from orderbot.domain.i18n import t
from orderbot.domain.models import InboundEvent
from orderbot.domain.ports import IdentityResolver
from orderbot.domain.services.conversation_service import ConversationService
from orderbot.domain.services.intent_parser import parse_operator_action
from orderbot.domain.services.notification_service import NotificationDispatcher
from orderbot.domain.services.order_workflow import OrderWorkflow
from orderbot.domain.services.session_manager import SessionManager

logger = logging.getLogger("event_router")


class SeenMessages:
    """Bounded LRU of gateway message ids already accepted for processing."""

    def __init__(self, capacity: int = 2048) -> None:
        self.capacity = max(1, capacity)
        self._ids: OrderedDict[str, None] = OrderedDict()

    def check_and_add(self, message_id: Optional[str]) -> bool:
        """Return True if *message_id* was seen before; remember it otherwise."""
        if not message_id:
            return False
        if message_id in self._ids:
            self._ids.move_to_end(message_id)
            return True
        self._ids[message_id] = None
        if len(self._ids) > self.capacity:
            self._ids.popitem(last=False)
        return False

    def __len__(self) -> int:
        return len(self._ids)


class EventRouter:
    def __init__(
        self,
        identity: IdentityResolver,
        sessions: SessionManager,
        conversation: ConversationService,
        workflow: OrderWorkflow,
        dispatcher: NotificationDispatcher,
        *,
        require_verified: bool = False,
        support_contact: str = "",
        seen_cache_size: int = 2048,
    ) -> None:
        self.identity = identity
        self.sessions = sessions
        self.conversation = conversation
        self.workflow = workflow
        self.dispatcher = dispatcher
        self.require_verified = require_verified
        self.support_contact = support_contact
        self.seen = SeenMessages(seen_cache_size)

    async def route(self, sender_id: str, event: InboundEvent) -> bool:
        """Dispatch one event.  Returns False for a dropped redelivery."""
        if self.seen.check_and_add(event.message_id):
            logger.info("Dropping redelivered message %s from %s", event.message_id, sender_id)
            return False

        role = self.identity.role_of(sender_id)

        if role.is_operator:
            async with self.sessions.hold(sender_id):
                action = parse_operator_action(event)
                if action is None:
                    await self.dispatcher.text(sender_id, t("OPERATOR_HELP"))
                    return True
                logger.info(
                    "%s %s: %s %s", role.value, sender_id, action.kind.value, action.order_number
                )
                await self.workflow.handle_operator_action(sender_id, role, action)
            return True

        if self.require_verified and not self.identity.is_verified_customer(sender_id):
            logger.info("Unverified customer %s", sender_id)
            await self.dispatcher.text(sender_id, t("NOT_VERIFIED", contact=self.support_contact))
            return True

        async with self.sessions.hold(sender_id):
            try:
                session = await self.sessions.load(sender_id)
            except SessionStoreError as exc:
                logger.error("Session load failed for %s: %s", sender_id, exc)
                await self.dispatcher.text(sender_id, t("TRY_AGAIN"))
                return True

            result = await self.conversation.handle(session, event)
            try:
                await self.sessions.commit(result.session)
            except SessionStoreError as exc:
                if result.submitted_order is None:
                    logger.error("Session commit failed for %s: %s", sender_id, exc)
                    await self.dispatcher.text(sender_id, t("TRY_AGAIN"))
                    return True
                # The order exists; the pre-submit session must not survive.
                logger.error(
                    "Session commit failed for %s after order %s: %s",
                    sender_id, result.submitted_order, exc,
                )
                await self.sessions.discard(sender_id)
            await self.dispatcher.dispatch_all(result.replies)
        return True

    async def handle_inbound_event(
        self, sender_id: str, payload: Union[InboundEvent, Mapping[str, Any]]
    ) -> None:
        """Entry point for the HTTP layer.  Never raises."""
        try:
            event = payload if isinstance(payload, InboundEvent) else InboundEvent.model_validate(payload)
            await self.route(sender_id, event)
        except Exception:
            logger.exception("Failed to handle event from %s", sender_id)
