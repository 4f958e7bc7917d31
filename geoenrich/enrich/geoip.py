"""
GeoIP resolver backed by a MaxMind GeoIP2 database
"""

import logging
import os
import threading
import time
from typing import Any, Dict, Optional, Union

import geoip2.database
import geoip2.errors
import maxminddb

from ..config import MaxMindConfig
from ..errors import ConfigurationError, ResolutionError
from ..services.cache import LookupCache
from ..services.prometheus_metrics import prometheus_metrics
from .models import (
    Address, AnonymityResult, City, ConnectionType, Country, GeoResult, Location,
    LookupMode, Postal, Subdivision, Traits,
)

logger = logging.getLogger("geoenrich.enrich.geoip")

Resolution = Union[GeoResult, AnonymityResult, ResolutionError]

# Engine errors that mean "no data for this address" rather than a broken setup
_LOOKUP_ERRORS = (geoip2.errors.GeoIP2Error, maxminddb.InvalidDatabaseError, ValueError, TypeError)


def open_reader(db_path: str) -> geoip2.database.Reader:
    """Open the database or raise ConfigurationError"""
    if not db_path or not os.path.isfile(db_path):
        raise ConfigurationError(f"GeoIP database not found at {db_path!r}")
    try:
        return geoip2.database.Reader(db_path)
    except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
        raise ConfigurationError(f"Cannot open GeoIP database {db_path!r}: {e}") from e


def _record(response: Any, name: str) -> Any:
    return getattr(response, name, None)


def _country(response) -> Optional[Country]:
    record = _record(response, "country")
    return Country(name=record.name) if record is not None else None


def _subdivision(response) -> Optional[Subdivision]:
    subdivisions = _record(response, "subdivisions")
    if subdivisions is None:
        return None
    most_specific = subdivisions.most_specific
    return Subdivision(name=most_specific.name) if most_specific is not None else None


def _city(response) -> Optional[City]:
    record = _record(response, "city")
    return City(name=record.name) if record is not None else None


def _postal(response) -> Optional[Postal]:
    record = _record(response, "postal")
    return Postal(code=record.code) if record is not None else None


def _location(response) -> Optional[Location]:
    record = _record(response, "location")
    if record is None:
        return None
    return Location(
        latitude=record.latitude,
        longitude=record.longitude,
        accuracy_radius=record.accuracy_radius,
    )


def _traits(response) -> Optional[Traits]:
    record = _record(response, "traits")
    if record is None:
        return None
    return Traits(
        user_type=record.user_type,
        connection_type=ConnectionType.from_text(record.connection_type),
        isp=record.isp,
        is_legitimate_proxy=bool(record.is_legitimate_proxy),
    )


def _anonymity(response) -> AnonymityResult:
    return AnonymityResult(
        is_anonymous=bool(response.is_anonymous),
        is_anonymous_vpn=bool(response.is_anonymous_vpn),
        is_tor_exit_node=bool(response.is_tor_exit_node),
    )


class GeoResolver:
    """
    Resolves addresses against the GeoIP database through the lookup cache.

    Lookup failures are returned as ResolutionError values, never raised.
    The reader is shared across request threads; geoip2 readers are safe for
    concurrent reads.
    """

    def __init__(self, reader, cache: Optional[LookupCache] = None, db_path: Optional[str] = None):
        self._reader = reader
        self.cache = cache if cache is not None else LookupCache()
        self.db_path = db_path
        self.loaded = reader is not None
        self.last_refresh = time.time() if self.loaded else 0
        self.error_count = 0
        self._swap_lock = threading.Lock()
        prometheus_metrics.set_geoip_loaded(self.loaded)
        if self.loaded:
            prometheus_metrics.set_geoip_last_refresh(self.last_refresh)

    @classmethod
    def open(cls, config: MaxMindConfig) -> "GeoResolver":
        """Open the configured database; raises ConfigurationError"""
        reader = open_reader(config.database_file_path)
        cache = LookupCache(max_entries=config.cache_max_entries, ttl_seconds=config.cache_ttl)
        logger.info("GeoIP database loaded successfully", extra={
            "component": "enrich.geoip",
            "event": "loaded",
            "db_path": config.database_file_path,
        })
        return cls(reader, cache=cache, db_path=config.database_file_path)

    def resolve(self, address: Address, mode: LookupMode) -> Resolution:
        mode = LookupMode(mode)
        return self.cache.get_or_compute((mode, address), lambda: self._resolve_uncached(address, mode))

    def _resolve_uncached(self, address: Address, mode: LookupMode) -> Resolution:
        if mode is LookupMode.COUNTRY:
            return self._query(address, mode, "country",
                               lambda r: GeoResult(country=_country(r)))
        if mode is LookupMode.CITY:
            return self._query(address, mode, "city",
                               lambda r: GeoResult(country=_country(r),
                                                   subdivision=_subdivision(r),
                                                   city=_city(r)))
        if mode is LookupMode.ANONYMOUS:
            return self._query(address, mode, "anonymous_ip", _anonymity)
        return self._resolve_enterprise(address)

    def _resolve_enterprise(self, address: Address) -> Resolution:
        # the two queries are independent; one failing keeps the other's fields
        geo = self._query(address, LookupMode.ENTERPRISE, "enterprise",
                          lambda r: GeoResult(country=_country(r),
                                              subdivision=_subdivision(r),
                                              city=_city(r),
                                              postal=_postal(r),
                                              location=_location(r),
                                              traits=_traits(r)))
        anonymity = self._query(address, LookupMode.ENTERPRISE, "anonymous_ip", _anonymity)

        geo_failed = isinstance(geo, ResolutionError)
        anonymity_failed = isinstance(anonymity, ResolutionError)
        if geo_failed and anonymity_failed:
            return ResolutionError(address, LookupMode.ENTERPRISE,
                                   f"{geo.reason}; {anonymity.reason}", cause=geo.cause)
        if geo_failed:
            logger.warning("Enterprise lookup failed, keeping anonymity result",
                           extra={"component": "enrich.geoip", "client_ip": str(address),
                                  "reason": geo.reason})
            return GeoResult(anonymity=anonymity)
        if anonymity_failed:
            logger.warning("Anonymity lookup failed, keeping enterprise result",
                           extra={"component": "enrich.geoip", "client_ip": str(address),
                                  "reason": anonymity.reason})
            return geo
        return GeoResult(
            country=geo.country,
            subdivision=geo.subdivision,
            city=geo.city,
            postal=geo.postal,
            location=geo.location,
            traits=geo.traits,
            anonymity=anonymity,
        )

    def _query(self, address: Address, mode: LookupMode, query: str, convert):
        reader = self._reader
        if reader is None:
            prometheus_metrics.increment_geoip_lookups(query, "unavailable")
            return ResolutionError(address, mode, "GeoIP database not loaded")
        try:
            response = getattr(reader, query)(address)
        except geoip2.errors.AddressNotFoundError as e:
            prometheus_metrics.increment_geoip_lookups(query, "not_found")
            return ResolutionError(address, mode, f"{query}: address not found", cause=e)
        except _LOOKUP_ERRORS as e:
            self.error_count += 1
            prometheus_metrics.increment_geoip_lookups(query, "error")
            return ResolutionError(address, mode, f"{query}: {e}", cause=e)
        prometheus_metrics.increment_geoip_lookups(query, "ok")
        return convert(response)

    def reload(self) -> bool:
        """Reopen the database file and drop every cached entry"""
        if not self.db_path:
            return False
        reader = open_reader(self.db_path)
        with self._swap_lock:
            old, self._reader = self._reader, reader
            self.cache.clear()
            self.loaded = True
            self.last_refresh = time.time()
        if old is not None:
            old.close()
        prometheus_metrics.set_geoip_loaded(True)
        prometheus_metrics.set_geoip_last_refresh(self.last_refresh)
        logger.info("GeoIP database reloaded", extra={
            "component": "enrich.geoip",
            "event": "reloaded",
            "db_path": self.db_path,
        })
        return True

    def close(self):
        with self._swap_lock:
            reader, self._reader = self._reader, None
            self.loaded = False
        if reader is not None:
            reader.close()
        prometheus_metrics.set_geoip_loaded(False)

    def get_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "status": "loaded" if self.loaded else "missing",
            "db_path": self.db_path,
            "last_refresh": self.last_refresh,
            "error_count": self.error_count,
            "cache": self.cache.stats(),
        }
        reader = self._reader
        if reader is not None and hasattr(reader, "metadata"):
            try:
                metadata = reader.metadata()
                status["database_type"] = metadata.database_type
                status["build_epoch"] = metadata.build_epoch
            except (AttributeError, maxminddb.InvalidDatabaseError):
                pass
        return status
