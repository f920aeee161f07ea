# scripts/seed_db.py

import argparse
import asyncio
import os
import sys

from loguru import logger

# Ensure project root (the folder containing 'orderbot') is on sys.path
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.append(PROJECT_ROOT)

from orderbot.core.config import settings
from orderbot.core.db import AsyncSessionLocal, engine
from orderbot.core.logging_config import setup_logging
from orderbot.infrastructure.db.base import Base
from orderbot.infrastructure.db.seed import VendorSeed, parse_vendor_spec, seed_directory


async def main(args: argparse.Namespace) -> None:
    setup_logging()

    async with engine.begin() as conn:
        if args.reset:
            logger.warning("Dropping all tables...")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    if args.vendor:
        vendors = [parse_vendor_spec(spec) for spec in args.vendor]
    else:
        vendors = [VendorSeed(phone, "Main Vendor") for phone in sorted(settings.vendor_phones)]

    await seed_directory(
        AsyncSessionLocal,
        vendors=vendors,
        delivery_partners=settings.delivery_partner_phones,
        verified_customers=settings.verified_customer_phones,
    )
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed the operator directory.")
    parser.add_argument(
        "--vendor",
        action="append",
        metavar="PHONE[:NAME[:LAT:LNG]]",
        help="vendor to upsert (repeatable); defaults to VENDOR_PHONES",
    )
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    asyncio.run(main(parser.parse_args()))
