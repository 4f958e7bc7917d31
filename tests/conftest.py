# tests/conftest.py
from types import SimpleNamespace

import geoip2.errors
import pytest

from geoenrich.config import MaxMindConfig
from geoenrich.enrich.geoip import GeoResolver
from geoenrich.filter import GeoIpRequestFilter
from geoenrich.services.cache import LookupCache


def country_response(country=None):
    return SimpleNamespace(country=SimpleNamespace(name=country))


def city_response(country=None, subdivision=None, city=None):
    return SimpleNamespace(
        country=SimpleNamespace(name=country),
        subdivisions=SimpleNamespace(most_specific=SimpleNamespace(name=subdivision)),
        city=SimpleNamespace(name=city),
    )


def enterprise_response(country=None, subdivision=None, city=None, postal=None,
                        latitude=None, longitude=None, accuracy_radius=None,
                        user_type=None, connection_type=None, isp=None,
                        is_legitimate_proxy=False):
    response = city_response(country, subdivision, city)
    response.postal = SimpleNamespace(code=postal)
    response.location = SimpleNamespace(latitude=latitude, longitude=longitude,
                                         accuracy_radius=accuracy_radius)
    response.traits = SimpleNamespace(user_type=user_type, connection_type=connection_type,
                                      isp=isp, is_legitimate_proxy=is_legitimate_proxy)
    return response


def anonymous_response(is_anonymous=False, is_anonymous_vpn=False, is_tor_exit_node=False):
    return SimpleNamespace(is_anonymous=is_anonymous, is_anonymous_vpn=is_anonymous_vpn,
                           is_tor_exit_node=is_tor_exit_node)


class FakeReader:
    """Stands in for geoip2.database.Reader, keyed by (query, address string)"""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    def _lookup(self, query, address):
        self.calls.append((query, str(address)))
        response = self.responses.get((query, str(address)))
        if response is None:
            raise geoip2.errors.AddressNotFoundError(f"The address {address} is not in the database.")
        if isinstance(response, Exception):
            raise response
        return response

    def country(self, address):
        return self._lookup("country", address)

    def city(self, address):
        return self._lookup("city", address)

    def anonymous_ip(self, address):
        return self._lookup("anonymous_ip", address)

    def enterprise(self, address):
        return self._lookup("enterprise", address)

    def metadata(self):
        return SimpleNamespace(database_type="GeoIP2-Enterprise", build_epoch=1700000000)

    def close(self):
        self.closed = True


def make_config(**overrides):
    values = {"databaseFilePath": "/nonexistent/GeoIP2-Enterprise.mmdb"}
    values.update(overrides)
    return MaxMindConfig(**values)


def make_filter(reader, **overrides):
    config = make_config(**overrides)
    resolver = GeoResolver(reader, cache=LookupCache(max_entries=config.cache_max_entries,
                                                     ttl_seconds=config.cache_ttl))
    return GeoIpRequestFilter(config, resolver=resolver)


@pytest.fixture
def fake_reader():
    return FakeReader({
        ("country", "8.8.8.8"): country_response("United States"),
        ("city", "8.8.8.8"): city_response("US", "CA", "Mountain View"),
        ("anonymous_ip", "8.8.8.8"): anonymous_response(True, False, False),
        ("enterprise", "8.8.8.8"): enterprise_response(
            country="United States", subdivision="California", city="Mountain View",
            postal="94043", latitude=37.386, longitude=-122.0838, accuracy_radius=1000,
            user_type="hosting", connection_type="Corporate", isp="Google LLC",
            is_legitimate_proxy=False,
        ),
    })
