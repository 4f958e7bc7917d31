"""
Result models for GeoIP lookups.

Every sub-record and every field on it is optional: the GeoIP2 databases
omit data freely, and absence is a normal outcome rather than an error.
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class LookupMode(str, Enum):
    """Class of GeoIP query performed for each request"""

    COUNTRY = "country"
    CITY = "city"
    ANONYMOUS = "anonymous"
    ENTERPRISE = "enterprise"

    def __str__(self) -> str:
        return self.value


class ConnectionType(Enum):
    """Connection type as reported by the enterprise/connection-type databases"""

    DIALUP = "Dialup"
    CABLE_DSL = "Cable/DSL"
    CORPORATE = "Corporate"
    CELLULAR = "Cellular"
    SATELLITE = "Satellite"

    @classmethod
    def from_text(cls, text: Optional[str]) -> Optional["ConnectionType"]:
        if not text:
            return None
        for member in cls:
            if member.value == text:
                return member
        return None


@dataclass(frozen=True)
class Country:
    name: Optional[str] = None


@dataclass(frozen=True)
class Subdivision:
    name: Optional[str] = None


@dataclass(frozen=True)
class City:
    name: Optional[str] = None


@dataclass(frozen=True)
class Postal:
    code: Optional[str] = None


@dataclass(frozen=True)
class Location:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_radius: Optional[int] = None


@dataclass(frozen=True)
class Traits:
    user_type: Optional[str] = None
    connection_type: Optional[ConnectionType] = None
    isp: Optional[str] = None
    is_legitimate_proxy: bool = False


@dataclass(frozen=True)
class AnonymityResult:
    """Outcome of an anonymous-IP query"""

    is_anonymous: bool = False
    is_anonymous_vpn: bool = False
    is_tor_exit_node: bool = False


@dataclass(frozen=True)
class GeoResult:
    """
    Sparse outcome of a country, city or enterprise query.

    ``anonymity`` is only populated on the enterprise path, where the
    anonymous-IP query runs alongside the enterprise query.
    """

    country: Optional[Country] = None
    subdivision: Optional[Subdivision] = None
    city: Optional[City] = None
    postal: Optional[Postal] = None
    location: Optional[Location] = None
    traits: Optional[Traits] = None
    anonymity: Optional[AnonymityResult] = None
