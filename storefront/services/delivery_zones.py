"""Pincode serviceability for home delivery."""

from __future__ import annotations

import re
from dataclasses import dataclass

from storefront.schemas.delivery import Serviceability

_PINCODE_RE = re.compile(r"^\d{6}$")


@dataclass(frozen=True)
class DeliveryZone:
    id: str
    display_name: str
    pincode_prefixes: tuple[str, ...]
    min_days: int
    max_days: int
    priority: int = 1

    def covers(self, pincode: str) -> bool:
        return pincode.startswith(self.pincode_prefixes)

    @property
    def estimated_delivery(self) -> str:
        return f"{self.min_days}-{self.max_days} days"


ZONE_MADURAI = DeliveryZone(
    id="madurai",
    display_name="Madurai, Tamil Nadu",
    pincode_prefixes=("625",),
    min_days=1,
    max_days=2,
)

ACTIVE_ZONES: tuple[DeliveryZone, ...] = (ZONE_MADURAI,)

UNSERVICEABLE_MESSAGE = (
    "Sorry, we currently only deliver within Madurai (Pincode 625xxx). Expanding soon!"
)


def normalize_pincode(pincode: str) -> str:
    return re.sub(r"\s", "", pincode or "")


def find_zone(pincode: str, zones: tuple[DeliveryZone, ...] = ACTIVE_ZONES) -> DeliveryZone | None:
    cleaned = normalize_pincode(pincode)
    matches = [zone for zone in zones if zone.covers(cleaned)]
    if not matches:
        return None
    return min(matches, key=lambda zone: zone.priority)


def check_serviceability(pincode: str) -> Serviceability:
    cleaned = normalize_pincode(pincode)
    if not _PINCODE_RE.match(cleaned):
        return Serviceability(is_serviceable=False, message="Please enter a valid 6-digit pincode")

    zone = find_zone(cleaned)
    if zone is None:
        return Serviceability(is_serviceable=False, message=UNSERVICEABLE_MESSAGE)

    return Serviceability(
        is_serviceable=True,
        zone=zone.id,
        message=f"Delivery available in {zone.display_name} ({zone.estimated_delivery})",
        estimated_delivery=zone.estimated_delivery,
    )
