# scripts/check_whatsapp_setup.py

import asyncio
import os
import sys

# ensure orderbot is importable
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import httpx
from loguru import logger

from orderbot.core.config import settings
from orderbot.core.logging_config import setup_logging
from orderbot.infrastructure.external.whatsapp_client import GRAPH_API_BASE

TOKEN_EXPIRED_CODE = 190


async def _check(client: httpx.AsyncClient, label: str, path: str, fields: str) -> bool:
    url = f"{GRAPH_API_BASE}/{settings.WHATSAPP_API_VERSION}/{path}"
    resp = await client.get(url, params={"access_token": settings.WHATSAPP_ACCESS_TOKEN, "fields": fields})
    if resp.status_code == 200:
        logger.success("{} OK: {}", label, resp.json())
        return True

    try:
        err = resp.json().get("error", {})
    except ValueError:
        err = {}
    if err.get("code") == TOKEN_EXPIRED_CODE:
        logger.critical("WhatsApp token EXPIRED (code=190). Generate a new token and update .env")
    else:
        logger.error("{} check failed: {} - {}", label, resp.status_code, err or resp.text)
    return False


async def main() -> int:
    setup_logging()
    if not settings.WHATSAPP_ACCESS_TOKEN:
        logger.error("No WHATSAPP_ACCESS_TOKEN configured")
        return 1

    checks = [("Token", "me", "id,name")]
    if settings.WHATSAPP_PHONE_NUMBER_ID:
        checks.append(("Phone number", settings.WHATSAPP_PHONE_NUMBER_ID, "display_phone_number,verified_name"))
    else:
        logger.warning("WHATSAPP_PHONE_NUMBER_ID is not set; outbound messages will fail")
    if settings.WHATSAPP_CATALOG_ID:
        checks.append(("Catalog", settings.WHATSAPP_CATALOG_ID, "id,name,product_count"))
    else:
        logger.warning("WHATSAPP_CATALOG_ID is not set; product names fall back to cart prices")

    async with httpx.AsyncClient(timeout=20) as client:
        results = [await _check(client, label, path, fields) for label, path, fields in checks]
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
