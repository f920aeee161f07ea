# orderbot/infrastructure/external/catalog_client.py

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from orderbot.core.config import settings
from orderbot.domain.errors import CatalogLookupError
from orderbot.infrastructure.external.whatsapp_client import GRAPH_API_BASE


class ProductInfo(BaseModel):
    name: str
    price: Decimal


_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def parse_price(raw: Optional[str]) -> Decimal:
    """Graph API prices look like ``"₹100.00"``, ``"Rs. 100"`` or ``"1,250.50 INR"``."""
    if raw is None:
        raise CatalogLookupError("product has no price")
    match = _PRICE_RE.search(str(raw))
    if match is None:
        raise CatalogLookupError(f"unparseable price {raw!r}")
    try:
        return Decimal(match.group(0).replace(",", ""))
    except InvalidOperation as e:
        raise CatalogLookupError(f"unparseable price {raw!r}") from e


class WhatsAppCatalogClient:
    """``CatalogLookup`` against the Commerce catalog behind the WhatsApp number."""

    def __init__(
        self,
        *,
        catalog_id: str = settings.WHATSAPP_CATALOG_ID,
        access_token: str = settings.WHATSAPP_ACCESS_TOKEN,
        api_version: str = settings.WHATSAPP_API_VERSION,
        timeout: float = settings.NOTIFY_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = f"{GRAPH_API_BASE}/{api_version}/{catalog_id}/products"
        self.access_token = access_token
        self.timeout = timeout
        self._client = client
        self._cache: dict[str, ProductInfo] = {}

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self.url, params=params, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(self.url, params=params)

    async def product_details(self, product_id: str) -> ProductInfo:
        cached = self._cache.get(product_id)
        if cached is not None:
            return cached

        params = {
            "access_token": self.access_token,
            "fields": "name,price,retailer_id",
            "filter": f'{{"retailer_id":{{"eq":"{product_id}"}}}}',
        }
        try:
            resp = await self._get(params)
        except httpx.HTTPError as e:
            raise CatalogLookupError(f"catalog unreachable: {e}") from e

        if resp.status_code >= 400:
            logger.warning("Catalog lookup {} failed: {} {}", product_id, resp.status_code, resp.text)
            raise CatalogLookupError(f"HTTP {resp.status_code}")

        try:
            data = resp.json().get("data") or []
        except (ValueError, AttributeError) as e:
            logger.warning("Catalog lookup {} returned an unreadable body: {}", product_id, resp.text[:200])
            raise CatalogLookupError("catalog response is not JSON") from e
        if not data:
            raise CatalogLookupError(f"product {product_id} not in catalog")

        info = ProductInfo(name=data[0].get("name") or product_id, price=parse_price(data[0].get("price")))
        self._cache[product_id] = info
        return info
