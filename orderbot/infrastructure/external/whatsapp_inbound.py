# orderbot/infrastructure/external/whatsapp_inbound.py
"""
Inbound side of the WhatsApp Cloud API webhook.

``iter_inbound_messages`` walks a webhook body and yields
``(sender_id, InboundEvent)`` for each message; status callbacks
(delivered/read receipts) carry no ``messages`` and are skipped.
"""

from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Optional

from loguru import logger

from orderbot.domain.models import EventKind, InboundEvent, Location, Selection


def verify_signature(body: bytes, signature_header: Optional[str], app_secret: str) -> bool:
    """Check ``X-Hub-Signature-256: sha256=<hex>`` against the raw body."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len("sha256="):])


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError):
        return Decimal("0")


def parse_inbound_message(message: dict[str, Any]) -> InboundEvent:
    msg_type = message.get("type")
    message_id = message.get("id")

    if msg_type == "text":
        return InboundEvent(
            kind=EventKind.TEXT,
            message_id=message_id,
            text=(message.get("text") or {}).get("body", ""),
        )

    if msg_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply")
        if reply:
            return InboundEvent(
                kind=EventKind.BUTTON,
                message_id=message_id,
                text=reply.get("title", ""),
                button_id=reply.get("id"),
            )

    if msg_type == "button":
        # Quick-reply buttons on template messages
        button = message.get("button") or {}
        return InboundEvent(
            kind=EventKind.BUTTON,
            message_id=message_id,
            text=button.get("text", ""),
            button_id=button.get("payload"),
        )

    if msg_type == "location":
        loc = message.get("location") or {}
        try:
            location = Location(
                latitude=float(loc["latitude"]),
                longitude=float(loc["longitude"]),
                name=loc.get("name"),
                address=loc.get("address"),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed location payload {}", message_id)
        else:
            return InboundEvent(kind=EventKind.LOCATION, message_id=message_id, location=location)

    if msg_type == "order":
        items = (message.get("order") or {}).get("product_items") or []
        selections = []
        for item in items:
            try:
                quantity = int(item.get("quantity", 0))
            except (TypeError, ValueError):
                quantity = 0
            selections.append(
                Selection(
                    product_id=str(item.get("product_retailer_id", "")),
                    quantity=quantity,
                    unit_price_hint=_decimal(item.get("item_price", 0)),
                )
            )
        return InboundEvent(kind=EventKind.CART, message_id=message_id, selections=tuple(selections))

    logger.info("Unsupported WhatsApp message type {} ({})", msg_type, message_id)
    return InboundEvent(kind=EventKind.UNSUPPORTED, message_id=message_id)


def iter_inbound_messages(body: dict[str, Any]) -> Iterator[tuple[str, InboundEvent]]:
    for entry in body.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for message in value.get("messages") or []:
                sender = message.get("from")
                if not sender:
                    continue
                yield sender, parse_inbound_message(message)
