# orderbot/infrastructure/external/whatsapp_client.py

from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx
from loguru import logger

from orderbot.core.config import settings
from orderbot.domain.errors import NotificationError
from orderbot.domain.models import ChoiceOption

GRAPH_API_BASE = "https://graph.facebook.com"

MAX_REPLY_BUTTONS = 3
BUTTON_TITLE_LIMIT = 20
ROW_TITLE_LIMIT = 24
ROW_DESCRIPTION_LIMIT = 72
LIST_BUTTON_LABEL = "Choose"


class WhatsAppSendError(NotificationError):
    """Cloud API rejected the message or could not be reached."""


def _clip(value: str, limit: int) -> str:
    return value if len(value) <= limit else value[: limit - 1] + "…"


def _envelope(to: str, kind: str, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": kind,
        kind: body,
    }


def text_payload(to: str, body: str) -> dict[str, Any]:
    return _envelope(to, "text", {"preview_url": False, "body": body})


def choice_payload(to: str, body: str, options: Sequence[ChoiceOption]) -> dict[str, Any]:
    """Reply buttons for up to three options, an interactive list beyond that."""
    if len(options) <= MAX_REPLY_BUTTONS:
        return _envelope(
            to,
            "interactive",
            {
                "type": "button",
                "body": {"text": body},
                "action": {
                    "buttons": [
                        {
                            "type": "reply",
                            "reply": {"id": o.id, "title": _clip(o.title, BUTTON_TITLE_LIMIT)},
                        }
                        for o in options
                    ]
                },
            },
        )

    rows = []
    for o in options:
        row = {"id": o.id, "title": _clip(o.title, ROW_TITLE_LIMIT)}
        if o.description:
            row["description"] = _clip(o.description, ROW_DESCRIPTION_LIMIT)
        rows.append(row)
    return _envelope(
        to,
        "interactive",
        {
            "type": "list",
            "body": {"text": body},
            "action": {"button": LIST_BUTTON_LABEL, "sections": [{"title": "Options", "rows": rows}]},
        },
    )


def catalog_payload(to: str, body: str, thumbnail_product_id: Optional[str] = None) -> dict[str, Any]:
    action: dict[str, Any] = {"name": "catalog_message"}
    if thumbnail_product_id:
        action["parameters"] = {"thumbnail_product_retailer_id": thumbnail_product_id}
    return _envelope(
        to,
        "interactive",
        {"type": "catalog_message", "body": {"text": body}, "action": action},
    )


def location_request_payload(to: str, body: str) -> dict[str, Any]:
    return _envelope(
        to,
        "interactive",
        {
            "type": "location_request_message",
            "body": {"text": body},
            "action": {"name": "send_location"},
        },
    )


class WhatsAppNotifier:
    """Outbound ``Notifier`` over the WhatsApp Cloud API."""

    def __init__(
        self,
        *,
        access_token: str = settings.WHATSAPP_ACCESS_TOKEN,
        phone_number_id: str = settings.WHATSAPP_PHONE_NUMBER_ID,
        api_version: str = settings.WHATSAPP_API_VERSION,
        timeout: float = settings.NOTIFY_TIMEOUT_SECONDS,
        thumbnail_product_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = f"{GRAPH_API_BASE}/{api_version}/{phone_number_id}/messages"
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        self.timeout = timeout
        self.thumbnail_product_id = thumbnail_product_id
        self._client = client

    async def _post(self, payload: dict[str, Any]) -> None:
        to = payload["to"]
        logger.info("WA HTTP → Sending {} to {}", payload["type"], to)
        try:
            if self._client is not None:
                resp = await self._client.post(self.url, json=payload, headers=self.headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.url, json=payload, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error("WA HTTP transport error for {}: {}", to, e)
            raise WhatsAppSendError(f"transport error: {e}") from e

        if resp.status_code >= 400:
            logger.error("WA HTTP error {}: {}", resp.status_code, resp.text)
            raise WhatsAppSendError(f"HTTP {resp.status_code}: {resp.text[:200]}")

        logger.success("WA HTTP → Message sent successfully to {}", to)

    async def send_text(self, to: str, body: str) -> None:
        await self._post(text_payload(to, body))

    async def send_choice(self, to: str, body: str, options: Sequence[ChoiceOption]) -> None:
        await self._post(choice_payload(to, body, options))

    async def send_catalog_prompt(self, to: str, body: str) -> None:
        await self._post(catalog_payload(to, body, self.thumbnail_product_id))

    async def send_location_request(self, to: str, body: str) -> None:
        await self._post(location_request_payload(to, body))
