"""
Map GeoIP results onto a flat attribute set.

One small function per sub-record. Each takes the (possibly absent)
sub-record and the AttributeSet to extend, and only writes an attribute
when its source field is present. Optional strings count as present only
when non-empty.
"""

from decimal import Decimal
from typing import Dict, Optional, Union

from .. import headers as h
from .models import (
    AnonymityResult, City, Country, GeoResult, Location, Postal, Subdivision, Traits,
)

AttributeSet = Dict[str, str]


def _has_text(value: Optional[str]) -> bool:
    return bool(value)


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def format_number(value: Union[int, float]) -> str:
    """Plain decimal text for a number, never in exponent form"""
    if isinstance(value, bool):
        raise TypeError("boolean is not a number here")
    if isinstance(value, int):
        return str(value)
    text = format(Decimal(repr(float(value))), "f")
    return text if "." in text else text + ".0"


def add_country_info(country: Optional[Country], attrs: AttributeSet) -> AttributeSet:
    if country is not None and _has_text(country.name):
        attrs[h.COUNTRY] = country.name
    return attrs


def add_state_info(subdivision: Optional[Subdivision], attrs: AttributeSet) -> AttributeSet:
    if subdivision is not None and _has_text(subdivision.name):
        attrs[h.STATE] = subdivision.name
    return attrs


def add_city_info(city: Optional[City], attrs: AttributeSet) -> AttributeSet:
    if city is not None and _has_text(city.name):
        attrs[h.CITY] = city.name
    return attrs


def add_postal_info(postal: Optional[Postal], attrs: AttributeSet) -> AttributeSet:
    if postal is not None and _has_text(postal.code):
        attrs[h.POSTAL] = postal.code
    return attrs


def add_location_info(location: Optional[Location], attrs: AttributeSet) -> AttributeSet:
    if location is None:
        return attrs
    if location.latitude is not None:
        attrs[h.LATITUDE] = format_number(location.latitude)
    if location.longitude is not None:
        attrs[h.LONGITUDE] = format_number(location.longitude)
    if location.accuracy_radius is not None:
        attrs[h.LOCATION_ACCURACY] = format_number(location.accuracy_radius)
    return attrs


def add_traits_info(traits: Optional[Traits], attrs: AttributeSet) -> AttributeSet:
    """User type, connection type and ISP when present; proxy_legal always"""
    if traits is None:
        return attrs
    if _has_text(traits.user_type):
        attrs[h.USER_TYPE] = traits.user_type
    if traits.connection_type is not None:
        attrs[h.CONNECTION_TYPE] = traits.connection_type.name
    if _has_text(traits.isp):
        attrs[h.ISP] = traits.isp
    attrs[h.PROXY_LEGAL] = format_bool(traits.is_legitimate_proxy)
    return attrs


def add_anonymity_info(anonymity: Optional[AnonymityResult], attrs: AttributeSet) -> AttributeSet:
    if anonymity is None:
        return attrs
    attrs[h.ANONYMOUS_IP] = format_bool(anonymity.is_anonymous)
    attrs[h.ANONYMOUS_VPN] = format_bool(anonymity.is_anonymous_vpn)
    attrs[h.TOR_EXIT_NODE] = format_bool(anonymity.is_tor_exit_node)
    return attrs


def map_geo_result(result: GeoResult, attrs: Optional[AttributeSet] = None) -> AttributeSet:
    """Apply every sub-record mapper (enterprise path)"""
    if attrs is None:
        attrs = {}
    add_country_info(result.country, attrs)
    add_state_info(result.subdivision, attrs)
    add_city_info(result.city, attrs)
    add_postal_info(result.postal, attrs)
    add_location_info(result.location, attrs)
    add_traits_info(result.traits, attrs)
    add_anonymity_info(result.anonymity, attrs)
    return attrs
