# orderbot/domain/services/identity.py
"""Role resolution from configured phone sets."""

from __future__ import annotations

from typing import Iterable

from orderbot.domain.models import Role

OPERATOR_ROLES = (Role.ADMIN, Role.VENDOR, Role.DELIVERY_PARTNER)


def normalize_phone(identifier: str) -> str:
    return (identifier or "").strip().lstrip("+").replace(" ", "")


class DirectoryIdentityResolver:
    """
    Static membership lookup.

    An identifier present in several sets resolves by precedence
    Admin > Vendor > DeliveryPartner > Customer, so an operator never falls
    through to the customer dialog.
    """

    def __init__(
        self,
        *,
        admins: Iterable[str] = (),
        vendors: Iterable[str] = (),
        delivery_partners: Iterable[str] = (),
        verified_customers: Iterable[str] = (),
    ) -> None:
        self._members: dict[Role, set[str]] = {role: set() for role in OPERATOR_ROLES}
        self.add_operators(Role.ADMIN, admins)
        self.add_operators(Role.VENDOR, vendors)
        self.add_operators(Role.DELIVERY_PARTNER, delivery_partners)
        self._verified = set(normalize_phone(p) for p in verified_customers)

    def role_of(self, identifier: str) -> Role:
        phone = normalize_phone(identifier)
        for role in OPERATOR_ROLES:
            if phone in self._members[role]:
                return role
        return Role.CUSTOMER

    def add_operators(self, role: Role, identifiers: Iterable[str]) -> None:
        if role not in self._members:
            raise ValueError(f"{role.value} is not an operator role")
        self._members[role].update(p for p in (normalize_phone(i) for i in identifiers) if p)

    def is_verified_customer(self, identifier: str) -> bool:
        return normalize_phone(identifier) in self._verified

    def add_verified_customers(self, identifiers: Iterable[str]) -> None:
        self._verified.update(normalize_phone(p) for p in identifiers)
