# orderbot/infrastructure/db/seed.py
"""Upsert operators and verified customers from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderbot.infrastructure.db.repositories import OperatorRepository


@dataclass(frozen=True)
class VendorSeed:
    phone: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def parse_vendor_spec(spec: str) -> VendorSeed:
    """``PHONE[:NAME[:LAT:LNG]]`` → VendorSeed."""
    parts = [p.strip() for p in spec.split(":")]
    phone = parts[0].lstrip("+")
    if not phone:
        raise ValueError(f"vendor spec {spec!r} has no phone")
    name = parts[1] if len(parts) > 1 and parts[1] else "Main Vendor"
    if len(parts) == 4:
        return VendorSeed(phone, name, float(parts[2]), float(parts[3]))
    if len(parts) > 2:
        raise ValueError(f"vendor spec {spec!r} needs both latitude and longitude")
    return VendorSeed(phone, name)


async def seed_directory(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    vendors: Iterable[VendorSeed] = (),
    delivery_partners: Iterable[str] = (),
    verified_customers: Iterable[str] = (),
) -> dict[str, int]:
    counts = {"vendors": 0, "delivery_partners": 0, "verified_customers": 0}
    async with session_factory() as db:
        repo = OperatorRepository(db)
        for vendor in vendors:
            await repo.upsert_vendor(
                vendor.phone, vendor.name, latitude=vendor.latitude, longitude=vendor.longitude
            )
            logger.info("Vendor seeded: {} ({})", vendor.phone, vendor.name)
            counts["vendors"] += 1
        for index, phone in enumerate(sorted(delivery_partners), start=1):
            name = "Main Delivery Partner" if index == 1 else f"Delivery Partner {index}"
            await repo.upsert_delivery_partner(phone, name)
            logger.info("Delivery partner seeded: {}", phone)
            counts["delivery_partners"] += 1
        for phone in sorted(verified_customers):
            await repo.upsert_verified_customer(phone)
            counts["verified_customers"] += 1
    logger.success(
        "Seeding complete: {vendors} vendors, {delivery_partners} delivery partners, "
        "{verified_customers} verified customers",
        **counts,
    )
    return counts
