"""Tests for role resolution, vendor assignment and directory configuration."""

import pytest

from orderbot.api.deps import load_directory
from orderbot.core.config import Settings
from orderbot.domain.errors import OrderStoreError
from orderbot.domain.models import Operator, OrderStatus, Profile, Role
from orderbot.domain.services.identity import DirectoryIdentityResolver, normalize_phone
from orderbot.domain.services.vendor_assignment import (
    FirstAvailableVendorPolicy,
    NearestVendorPolicy,
    build_vendor_policy,
    haversine_km,
)
from orderbot.infrastructure.db.seed import parse_vendor_spec

from fakes import CUSTOMER, build_bot, button, seed_order

# Bengaluru, roughly
MG_ROAD = (12.9756, 77.6050)
INDIRANAGAR = (12.9784, 77.6408)
WHITEFIELD = (12.9698, 77.7500)


def _vendor(phone, coords=None):
    lat, lng = coords or (None, None)
    return Operator(phone=phone, name=f"Vendor {phone}", role=Role.VENDOR, latitude=lat, longitude=lng)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def test_normalize_phone():
    assert normalize_phone("+91 99000 00001") == "919900000001"
    assert normalize_phone("") == ""


def test_roles_resolve_by_precedence():
    resolver = DirectoryIdentityResolver(
        admins=["111"], vendors=["111", "222"], delivery_partners=["222", "333"]
    )
    assert resolver.role_of("+111") is Role.ADMIN
    assert resolver.role_of("222") is Role.VENDOR
    assert resolver.role_of("333") is Role.DELIVERY_PARTNER
    assert resolver.role_of("444") is Role.CUSTOMER


def test_verified_customers_can_be_added():
    resolver = DirectoryIdentityResolver(verified_customers=["+555"])
    assert resolver.is_verified_customer("555")
    assert not resolver.is_verified_customer("666")
    resolver.add_verified_customers(["666"])
    assert resolver.is_verified_customer("+666")


# ---------------------------------------------------------------------------
# Vendor assignment
# ---------------------------------------------------------------------------

def test_haversine_distance():
    assert haversine_km(*MG_ROAD, *MG_ROAD) == 0
    assert 3.5 < haversine_km(*MG_ROAD, *INDIRANAGAR) < 4.5
    assert haversine_km(*MG_ROAD, *WHITEFIELD) > 10


def test_first_available_policy():
    policy = FirstAvailableVendorPolicy()
    assert policy.choose([_vendor("1"), _vendor("2")], Profile()).phone == "1"
    assert policy.choose([], Profile()) is None


def test_nearest_policy_picks_closest_in_range():
    policy = NearestVendorPolicy(max_distance_km=5)
    vendors = [_vendor("far", WHITEFIELD), _vendor("near", INDIRANAGAR), _vendor("unknown")]
    profile = Profile(latitude=MG_ROAD[0], longitude=MG_ROAD[1])
    assert policy.choose(vendors, profile).phone == "near"


def test_nearest_policy_none_in_range():
    policy = NearestVendorPolicy(max_distance_km=5)
    profile = Profile(latitude=MG_ROAD[0], longitude=MG_ROAD[1])
    assert policy.choose([_vendor("far", WHITEFIELD)], profile) is None


def test_nearest_policy_falls_back_without_location():
    policy = NearestVendorPolicy(max_distance_km=5)
    vendors = [_vendor("far", WHITEFIELD), _vendor("near", INDIRANAGAR)]
    assert policy.choose(vendors, Profile(address="12 MG Road")).phone == "far"


def test_build_vendor_policy():
    assert build_vendor_policy("nearest", 2.5).max_distance_km == 2.5
    assert build_vendor_policy("first_available").name == "first_available"
    assert build_vendor_policy("round_robin").name == "first_available"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_settings_split_phone_lists():
    cfg = Settings(
        VENDOR_PHONES="+91 98000, 919800000002,,",
        ADMIN_PHONE="919600000001",
        DELIVERY_PARTNER_PHONES="",
    )
    assert cfg.vendor_phones == frozenset({"91 98000", "919800000002"})
    assert cfg.admin_phones == frozenset({"919600000001"})
    assert cfg.delivery_partner_phones == frozenset()


def test_parse_vendor_spec():
    plain = parse_vendor_spec("919800000001")
    assert plain.phone == "919800000001"
    assert plain.latitude is None

    full = parse_vendor_spec("+919800000002:Spice Hub:12.97:77.60")
    assert full.phone == "919800000002"
    assert full.name == "Spice Hub"
    assert (full.latitude, full.longitude) == (12.97, 77.60)


# ---------------------------------------------------------------------------
# Directory loaded at startup
# ---------------------------------------------------------------------------

DB_VENDOR = "919811111111"
DB_PARTNER = "919711111111"


class _Directory:
    def __init__(self, fail=False):
        self.fail = fail

    async def operator_phones(self):
        if self.fail:
            raise OrderStoreError("database down")
        return {Role.VENDOR: [DB_VENDOR], Role.DELIVERY_PARTNER: [DB_PARTNER]}

    async def verified_customer_phones(self):
        return ["919922222222"]


def test_load_directory_registers_database_operators(event_loop):
    resolver = DirectoryIdentityResolver(admins=["111"])
    assert resolver.role_of(DB_VENDOR) is Role.CUSTOMER

    counts = event_loop.run_until_complete(load_directory(resolver, _Directory()))

    assert counts == {"vendors": 1, "delivery_partners": 1, "verified_customers": 1}
    assert resolver.role_of(DB_VENDOR) is Role.VENDOR
    assert resolver.role_of("+" + DB_PARTNER) is Role.DELIVERY_PARTNER
    assert resolver.is_verified_customer("919922222222")


def test_load_directory_keeps_configured_phones_when_store_is_down(event_loop):
    resolver = DirectoryIdentityResolver(vendors=["222"])

    counts = event_loop.run_until_complete(load_directory(resolver, _Directory(fail=True)))

    assert counts == {"vendors": 0, "delivery_partners": 0, "verified_customers": 0}
    assert resolver.role_of("222") is Role.VENDOR
    assert resolver.role_of(DB_VENDOR) is Role.CUSTOMER


def test_add_operators_rejects_customer_role():
    resolver = DirectoryIdentityResolver()
    with pytest.raises(ValueError):
        resolver.add_operators(Role.CUSTOMER, ["333"])


def test_database_vendor_tap_reaches_the_workflow(event_loop):
    bot = build_bot()
    seed_order(bot.store, OrderStatus.PENDING_VENDOR_CONFIRMATION, vendor_id=DB_VENDOR)
    event_loop.run_until_complete(load_directory(bot.router.identity, _Directory()))

    bot.send(event_loop, DB_VENDOR, button("accept_ORD123"))

    assert bot.store.orders["ORD123"].status is not OrderStatus.PENDING_VENDOR_CONFIRMATION
    assert "accepted your order" in bot.notifier.to(CUSTOMER)[0].body
    assert "is now" in bot.notifier.to(DB_VENDOR)[-1].body
