"""On-site presence attestation.

An attestor answers a single question: is the subject physically at the
office right now? Implementations check the client network address or the
reported geolocation. The bypass attestor exists for development setups and
logs a warning on every call so it never goes unnoticed.
"""

from __future__ import annotations

import ipaddress
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence

from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class PresenceAttestor(Protocol):
    def is_present_on_site(self) -> bool: ...


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def parse_networks(values: Iterable[str]) -> list:
    networks = []
    for raw in values:
        raw = str(raw).strip()
        if not raw:
            continue
        try:
            networks.append(ipaddress.ip_network(raw, strict=False))
        except ValueError as exc:
            raise ValidationError(f"invalid network {raw!r}") from exc
    return networks


class NetworkPresenceAttestor:
    """Present when the client address falls inside one of the office networks."""

    def __init__(self, allowed_networks: Sequence, address: Optional[str]):
        self._networks = list(allowed_networks)
        self._address = address

    def is_present_on_site(self) -> bool:
        if not self._address:
            return False
        try:
            addr = ipaddress.ip_address(self._address)
        except ValueError:
            logger.info("Unparseable client address %r", self._address, extra={"event": "presence"})
            return False
        present = any(addr.version == net.version and addr in net for net in self._networks)
        if not present:
            logger.info("Address %s is outside the office networks", addr, extra={"event": "presence", "status": "denied"})
        return present


@dataclass(frozen=True)
class OfficeLocation:
    latitude: float
    longitude: float
    radius_km: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0 or not -180.0 <= self.longitude <= 180.0:
            raise ValidationError("office coordinates are out of range")
        if self.radius_km <= 0:
            raise ValidationError("office radius must be positive")


class GeoFencePresenceAttestor:
    """Present when the reported position lies within the office radius."""

    def __init__(self, office: OfficeLocation, latitude: Optional[float], longitude: Optional[float]):
        self._office = office
        self._latitude = latitude
        self._longitude = longitude

    def is_present_on_site(self) -> bool:
        if self._latitude is None or self._longitude is None:
            return False
        distance = haversine_km(self._latitude, self._longitude, self._office.latitude, self._office.longitude)
        present = distance <= self._office.radius_km
        if not present:
            logger.info(
                "Reported position is %.3f km from the office (limit %.3f km)",
                distance,
                self._office.radius_km,
                extra={"event": "presence", "status": "denied"},
            )
        return present


class BypassPresenceAttestor:
    def is_present_on_site(self) -> bool:
        logger.warning("Presence check bypassed", extra={"event": "presence_bypass"})
        return True


PRESENCE_MODES = ("network", "geofence", "bypass")


@dataclass(frozen=True)
class PresenceAttestorFactory:
    """Builds the per-request attestor for the configured presence mode."""

    mode: str
    allowed_networks: tuple = ()
    office: Optional[OfficeLocation] = None

    def __post_init__(self):
        if self.mode not in PRESENCE_MODES:
            raise ValidationError(f"unknown presence mode {self.mode!r}")
        if self.mode == "geofence" and self.office is None:
            raise ValidationError("geofence presence mode requires an office location")

    def for_request(
        self,
        *,
        address: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> PresenceAttestor:
        if self.mode == "network":
            return NetworkPresenceAttestor(self.allowed_networks, address)
        if self.mode == "geofence":
            return GeoFencePresenceAttestor(self.office, latitude, longitude)
        return BypassPresenceAttestor()
