# orderbot/domain/services/vendor_assignment.py
"""
Vendor assignment policies.

A newly placed order is routed to exactly one vendor.  Two policies exist:

* ``first_available`` – the first active vendor in directory order (default).
* ``nearest``         – the closest vendor with coordinates within
  ``max_distance_km`` of the customer's shared location; customers who typed
  an address instead of sharing a location fall back to ``first_available``.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Protocol, Sequence

from orderbot.domain.models import Operator, Profile

logger = logging.getLogger("vendor_assignment")

EARTH_RADIUS_KM = 6371.0088


class VendorPolicy(Protocol):
    name: str

    def choose(self, vendors: Sequence[Operator], profile: Profile) -> Optional[Operator]: ...


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


class FirstAvailableVendorPolicy:
    name = "first_available"

    def choose(self, vendors: Sequence[Operator], profile: Profile) -> Optional[Operator]:
        return vendors[0] if vendors else None


class NearestVendorPolicy:
    name = "nearest"

    def __init__(self, max_distance_km: float = 5.0) -> None:
        self.max_distance_km = max_distance_km
        self._fallback = FirstAvailableVendorPolicy()

    def choose(self, vendors: Sequence[Operator], profile: Profile) -> Optional[Operator]:
        if profile.latitude is None or profile.longitude is None:
            return self._fallback.choose(vendors, profile)

        best: Optional[Operator] = None
        best_km = self.max_distance_km
        for vendor in vendors:
            if vendor.latitude is None or vendor.longitude is None:
                continue
            km = haversine_km(profile.latitude, profile.longitude, vendor.latitude, vendor.longitude)
            if km <= best_km:
                best, best_km = vendor, km

        if best is None:
            logger.info(
                "No vendor within %.1f km of (%s, %s)",
                self.max_distance_km, profile.latitude, profile.longitude,
            )
        return best


def build_vendor_policy(name: str, max_distance_km: float = 5.0) -> VendorPolicy:
    if name == NearestVendorPolicy.name:
        return NearestVendorPolicy(max_distance_km)
    if name != FirstAvailableVendorPolicy.name:
        logger.warning("Unknown vendor assignment policy %r, using first_available", name)
    return FirstAvailableVendorPolicy()
