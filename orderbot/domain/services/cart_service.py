# orderbot/domain/services/cart_service.py
"""
Cart aggregation.

Pure transformations over ``dict[product_id, CartLine]``: every function
returns a new mapping and leaves its argument untouched, so the caller
(running under the per-customer lock) decides when the new cart is
committed to the session.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Mapping

from orderbot.domain.errors import CatalogLookupError
from orderbot.domain.models import CartLine, CartSummary, Selection
from orderbot.domain.ports import CatalogLookup

logger = logging.getLogger("cart_service")

Cart = Mapping[str, CartLine]

PLACEHOLDER_NAME = "Item {product_id}"


async def add_selection(
    cart: Cart,
    selection: Iterable[Selection],
    catalog: CatalogLookup,
) -> dict[str, CartLine]:
    """Merge catalog selections into a copy of *cart*.

    Existing products only have their quantity incremented.  New products
    are resolved through the catalog; a failed lookup falls back to a
    placeholder name and the price hint carried in the payload instead of
    rejecting the whole cart.
    """
    merged: dict[str, CartLine] = dict(cart)

    for entry in selection:
        if entry.quantity <= 0:
            logger.info("Skipping non-positive quantity for %s", entry.product_id)
            continue

        existing = merged.get(entry.product_id)
        if existing is not None:
            merged[entry.product_id] = existing.model_copy(
                update={"quantity": existing.quantity + entry.quantity}
            )
            continue

        name = PLACEHOLDER_NAME.format(product_id=entry.product_id)
        price = entry.unit_price_hint
        try:
            details = await catalog.product_details(entry.product_id)
            name = details.name or name
            price = Decimal(str(details.price))
        except CatalogLookupError as exc:
            logger.warning("Catalog lookup failed for %s: %s", entry.product_id, exc)

        merged[entry.product_id] = CartLine(
            product_id=entry.product_id,
            name=name,
            unit_price=price,
            quantity=entry.quantity,
        )

    return merged


def clear(cart: Cart) -> dict[str, CartLine]:
    return {}


def summarize(cart: Cart) -> CartSummary:
    """Lines (sorted by product id for stable output) and the recomputed total."""
    lines = tuple(cart[pid] for pid in sorted(cart))
    total = sum((line.line_total for line in lines), Decimal("0"))
    return CartSummary(lines=lines, total=total)


def format_money(amount: Decimal, symbol: str) -> str:
    quantized = amount.quantize(Decimal("0.01"))
    if quantized == quantized.to_integral_value():
        return f"{symbol}{int(quantized)}"
    return f"{symbol}{quantized}"


def format_lines(lines: Iterable[CartLine], symbol: str) -> str:
    return "\n".join(
        f"{line.quantity} x {line.name} @ {format_money(line.unit_price, symbol)}"
        f" = {format_money(line.line_total, symbol)}"
        for line in lines
    )
