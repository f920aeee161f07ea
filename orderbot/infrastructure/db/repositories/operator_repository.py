# orderbot/infrastructure/db/repositories/operator_repository.py

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderbot.domain.models import Operator, Role
from orderbot.infrastructure.db.models import DeliveryPartner, Vendor, VerifiedCustomer


class OperatorRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_active_vendors(self) -> list[Operator]:
        stmt = select(Vendor).where(Vendor.is_active.is_(True)).order_by(Vendor.id)
        result = await self.db.execute(stmt)
        return [
            Operator(
                phone=v.phone,
                name=v.name,
                role=Role.VENDOR,
                latitude=v.latitude,
                longitude=v.longitude,
            )
            for v in result.scalars().all()
        ]

    async def list_available_partners(self) -> list[Operator]:
        stmt = (
            select(DeliveryPartner)
            .where(DeliveryPartner.is_available.is_(True))
            .order_by(DeliveryPartner.id)
        )
        result = await self.db.execute(stmt)
        return [
            Operator(phone=p.phone, name=p.name, role=Role.DELIVERY_PARTNER)
            for p in result.scalars().all()
        ]

    async def list_operator_phones(self) -> dict[Role, list[str]]:
        """Every registered vendor and partner, available or not."""
        vendors = await self.db.execute(select(Vendor.phone).order_by(Vendor.id))
        partners = await self.db.execute(select(DeliveryPartner.phone).order_by(DeliveryPartner.id))
        return {
            Role.VENDOR: list(vendors.scalars().all()),
            Role.DELIVERY_PARTNER: list(partners.scalars().all()),
        }

    async def list_verified_phones(self) -> list[str]:
        result = await self.db.execute(select(VerifiedCustomer.phone))
        return list(result.scalars().all())

    async def upsert_vendor(
        self,
        phone: str,
        name: str,
        *,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Vendor:
        result = await self.db.execute(select(Vendor).where(Vendor.phone == phone))
        vendor = result.scalar_one_or_none()
        if vendor is None:
            vendor = Vendor(phone=phone, name=name)
            self.db.add(vendor)
        vendor.name = name
        vendor.latitude = latitude
        vendor.longitude = longitude
        vendor.is_active = True
        await self.db.commit()
        return vendor

    async def upsert_delivery_partner(self, phone: str, name: str) -> DeliveryPartner:
        result = await self.db.execute(select(DeliveryPartner).where(DeliveryPartner.phone == phone))
        partner = result.scalar_one_or_none()
        if partner is None:
            partner = DeliveryPartner(phone=phone, name=name)
            self.db.add(partner)
        partner.name = name
        partner.is_available = True
        await self.db.commit()
        return partner

    async def upsert_verified_customer(self, phone: str, name: Optional[str] = None) -> VerifiedCustomer:
        result = await self.db.execute(select(VerifiedCustomer).where(VerifiedCustomer.phone == phone))
        customer = result.scalar_one_or_none()
        if customer is None:
            customer = VerifiedCustomer(phone=phone, name=name)
            self.db.add(customer)
        elif name:
            customer.name = name
        await self.db.commit()
        return customer
