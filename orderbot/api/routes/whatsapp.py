import json

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from loguru import logger

from orderbot.api.deps import get_event_router, require_whatsapp_signature
from orderbot.core.config import settings
from orderbot.domain.services.event_router import EventRouter
from orderbot.infrastructure.external.whatsapp_inbound import iter_inbound_messages

router = APIRouter()


@router.get("/webhook", response_class=PlainTextResponse)
async def verify(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
):
    if hub_mode == "subscribe" and hub_verify_token == settings.WHATSAPP_VERIFY_TOKEN:
        logger.info("Webhook verified")
        return hub_challenge
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/webhook")
async def webhook(
    raw_body: bytes = Depends(require_whatsapp_signature),
    event_router: EventRouter = Depends(get_event_router),
):
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        logger.warning("Webhook body is not JSON")
        return {"status": "ignored"}

    for sender_id, event in iter_inbound_messages(body):
        await event_router.handle_inbound_event(sender_id, event)

    return {"status": "ok"}
