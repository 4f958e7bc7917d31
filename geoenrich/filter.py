"""
Per-request GeoIP enrichment: extract the client address, resolve it,
and write the resulting attributes back as request headers.
"""

import ipaddress
import logging
from typing import MutableMapping, Optional

from .config import MaxMindConfig
from .enrich import mapper
from .enrich.geoip import GeoResolver
from .enrich.models import Address, AnonymityResult, GeoResult, LookupMode
from .errors import AddressParseError, ResolutionError
from .headers import header_name, header_value
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geoenrich.filter")


def extract_candidate(headers: MutableMapping[str, str], header: str) -> Optional[str]:
    """First entry of the configured header, or None when absent/blank"""
    value = headers.get(header)
    if value is None:
        return None
    # forwarding chains list the originating client first
    candidate = value.split(",")[0].strip()
    return candidate or None


def parse_address(candidate: str) -> Address:
    try:
        return ipaddress.ip_address(candidate)
    except ValueError as e:
        raise AddressParseError(candidate) from e


class GeoIpRequestFilter:
    """
    Enrich one request at a time from a shared resolver.

    The lookup mode is fixed at construction. Failures at any stage leave
    the request untouched.
    """

    def __init__(self, config: MaxMindConfig, resolver: Optional[GeoResolver] = None):
        self.config = config
        self.mode = config.lookup_mode
        self.remote_ip_header = config.remote_ip_header
        # opening the database here makes a bad path fail at startup
        self.resolver = resolver if resolver is not None else GeoResolver.open(config)

    def filter(self, headers: MutableMapping[str, str]) -> mapper.AttributeSet:
        """Enrich ``headers`` in place and return the attributes as written"""
        candidate = extract_candidate(headers, self.remote_ip_header)
        if candidate is None:
            prometheus_metrics.increment_filter_requests("skipped")
            return {}

        try:
            address = parse_address(candidate)
        except AddressParseError as e:
            logger.debug(str(e), extra={"component": "filter", "header": self.remote_ip_header})
            prometheus_metrics.increment_filter_requests("invalid_address")
            return {}

        # encode everything before the first write so write-back is all or nothing
        written = {name: header_value(value) for name, value in self.enrich(address).items()}
        for name, value in written.items():
            headers[header_name(name)] = value
            prometheus_metrics.increment_attributes_written(name)
        return written

    def enrich(self, address: Address) -> mapper.AttributeSet:
        """Resolve and map an address according to the configured mode"""
        result = self.resolver.resolve(address, self.mode)
        if isinstance(result, ResolutionError):
            logger.warning("Cannot resolve geoip info", extra={
                "component": "filter",
                "client_ip": str(address),
                "mode": self.mode.value,
                "reason": result.reason,
            })
            prometheus_metrics.increment_filter_requests("resolution_error")
            return {}

        attrs = self._dispatch(result)
        prometheus_metrics.increment_filter_requests("enriched")
        return attrs

    def _dispatch(self, result) -> mapper.AttributeSet:
        attrs: mapper.AttributeSet = {}
        if self.mode is LookupMode.ENTERPRISE:
            return mapper.map_geo_result(result, attrs)
        if self.mode is LookupMode.ANONYMOUS:
            if isinstance(result, AnonymityResult):
                mapper.add_anonymity_info(result, attrs)
            return attrs
        if not isinstance(result, GeoResult):
            return attrs
        mapper.add_country_info(result.country, attrs)
        if self.mode is LookupMode.CITY:
            mapper.add_state_info(result.subdivision, attrs)
            mapper.add_city_info(result.city, attrs)
        return attrs
