# orderbot/domain/services/notification_service.py
"""
Outbound notification dispatcher.

Every message the core wants to send (customer replies, vendor/delivery
partner tasks, admin alerts) goes through ``NotificationDispatcher``, which

* retries a failed send up to ``max_attempts`` times with exponential backoff,
* writes the message to the dead-letter sink once attempts are exhausted,
* returns a ``DeliveryResult`` so the caller can see the failure.

A failed send never raises into the inbound pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from orderbot.domain.errors import NotificationError
from orderbot.domain.models import (
    ChoiceOption,
    DeliveryResult,
    OutboundKind,
    OutboundMessage,
)
from orderbot.domain.ports import DeadLetterSink, Notifier

logger = logging.getLogger("notification_service")

MAX_NOTIFY_ATTEMPTS = 3


def text_message(to: str, body: str) -> OutboundMessage:
    return OutboundMessage(to=to, kind=OutboundKind.TEXT, body=body)


def choice_message(to: str, body: str, options: Sequence[ChoiceOption]) -> OutboundMessage:
    return OutboundMessage(to=to, kind=OutboundKind.CHOICE, body=body, options=tuple(options))


def catalog_message(to: str, body: str) -> OutboundMessage:
    return OutboundMessage(to=to, kind=OutboundKind.CATALOG, body=body)


def location_request_message(to: str, body: str) -> OutboundMessage:
    return OutboundMessage(to=to, kind=OutboundKind.LOCATION_REQUEST, body=body)


class NotificationDispatcher:
    def __init__(
        self,
        notifier: Notifier,
        *,
        max_attempts: int = MAX_NOTIFY_ATTEMPTS,
        backoff_seconds: float = 0.5,
        dead_letters: Optional[DeadLetterSink] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.notifier = notifier
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.dead_letters = dead_letters
        self._sleep = sleep

    async def _send_once(self, message: OutboundMessage) -> None:
        if message.kind is OutboundKind.TEXT:
            await self.notifier.send_text(message.to, message.body)
        elif message.kind is OutboundKind.CHOICE:
            await self.notifier.send_choice(message.to, message.body, message.options)
        elif message.kind is OutboundKind.CATALOG:
            await self.notifier.send_catalog_prompt(message.to, message.body)
        elif message.kind is OutboundKind.LOCATION_REQUEST:
            await self.notifier.send_location_request(message.to, message.body)
        else:
            raise NotificationError(f"Unsupported outbound kind {message.kind!r}")

    async def dispatch(self, message: OutboundMessage) -> DeliveryResult:
        last_error: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._send_once(message)
                return DeliveryResult(message=message, ok=True, attempts=attempt)
            except NotificationError as exc:
                last_error = str(exc)
                logger.warning(
                    "Send %s to %s failed on attempt %d/%d: %s",
                    message.kind.value, message.to, attempt, self.max_attempts, exc,
                )
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        logger.error(
            "Giving up on %s to %s after %d attempts: %s",
            message.kind.value, message.to, self.max_attempts, last_error,
        )
        await self._dead_letter(message, last_error)
        return DeliveryResult(
            message=message, ok=False, attempts=self.max_attempts, error=last_error
        )

    async def dispatch_all(self, messages: Iterable[OutboundMessage]) -> list[DeliveryResult]:
        """Send in order; a failure does not stop the remaining messages."""
        results = [await self.dispatch(message) for message in messages]
        failed = [r for r in results if not r.ok]
        if failed:
            logger.error(
                "%d of %d notifications failed: %s",
                len(failed), len(results), ", ".join(r.message.to for r in failed),
            )
        return results

    async def text(self, to: str, body: str) -> DeliveryResult:
        return await self.dispatch(text_message(to, body))

    async def choice(self, to: str, body: str, options: Sequence[ChoiceOption]) -> DeliveryResult:
        return await self.dispatch(choice_message(to, body, options))

    async def _dead_letter(self, message: OutboundMessage, last_error: Optional[str]) -> None:
        if self.dead_letters is None:
            return
        try:
            await self.dead_letters.record(
                message.to,
                message.model_dump_json(),
                "max_retries_exceeded",
                last_error,
                self.max_attempts,
            )
        except Exception:
            logger.exception("Failed to write dead letter for %s", message.to)
