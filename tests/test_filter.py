"""
Tests for the per-request enrichment filter
"""

import ipaddress
import pytest
from unittest.mock import MagicMock
from prometheus_client import REGISTRY
from starlette.datastructures import MutableHeaders

from geoenrich.enrich.models import LookupMode
from geoenrich.errors import AddressParseError, ConfigurationError
from geoenrich.filter import GeoIpRequestFilter, extract_candidate, parse_address
from geoenrich.headers import header_value

from conftest import (
    FakeReader, anonymous_response, city_response, country_response, enterprise_response,
    make_config, make_filter,
)


def request_headers(**values):
    headers = MutableHeaders()
    for name, value in values.items():
        headers[name.replace("_", "-")] = value
    return headers


class TestExtractAndParse:
    """Address extraction from the configured header"""

    def test_absent_header(self):
        assert extract_candidate(request_headers(), "X-Forwarded-For") is None

    def test_blank_header(self):
        assert extract_candidate(request_headers(X_Forwarded_For="   "), "X-Forwarded-For") is None

    def test_first_entry_of_chain(self):
        headers = request_headers(X_Forwarded_For="203.0.113.7, 10.0.0.1")
        assert extract_candidate(headers, "x-forwarded-for") == "203.0.113.7"

    def test_parse_ipv6(self):
        assert parse_address("2001:db8::1") == ipaddress.ip_address("2001:db8::1")

    @pytest.mark.parametrize("candidate", ["not-an-ip", "999.1.1.1", "example.com"])
    def test_parse_invalid(self, candidate):
        with pytest.raises(AddressParseError):
            parse_address(candidate)


class TestSkippedRequests:
    """Blank or malformed candidates never reach the resolver"""

    def setup_method(self):
        self.resolver = MagicMock()
        self.request_filter = GeoIpRequestFilter(make_config(type="city"), resolver=self.resolver)

    def test_absent_address(self):
        headers = request_headers(Accept="text/html")
        assert self.request_filter.filter(headers) == {}
        assert dict(headers) == {"accept": "text/html"}
        self.resolver.resolve.assert_not_called()

    def test_blank_address(self):
        headers = request_headers(X_Forwarded_For="")
        assert self.request_filter.filter(headers) == {}
        self.resolver.resolve.assert_not_called()

    def test_unparsable_address(self):
        headers = request_headers(X_Forwarded_For="garbage")
        assert self.request_filter.filter(headers) == {}
        assert list(headers.keys()) == ["x-forwarded-for"]
        self.resolver.resolve.assert_not_called()


class TestDispatch:
    """Mode dispatch and write-back"""

    def test_country_mode(self, fake_reader):
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(fake_reader, type="country").filter(headers)
        assert attrs == {"country": "United States"}
        assert headers["X-COUNTRY"] == "United States"

    def test_city_mode(self, fake_reader):
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(fake_reader, type="city").filter(headers)
        assert attrs == {"country": "US", "state": "CA", "city": "Mountain View"}
        assert headers["x-state"] == "CA"
        assert "X-POSTAL" not in headers
        assert "X-PROXY-LEGAL" not in headers

    def test_anonymous_mode(self, fake_reader):
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(fake_reader, type="anonymous").filter(headers)
        assert attrs == {"anonymous_ip": "true", "anonymous_vpn": "false", "tor_exit_node": "false"}
        assert headers["X-TOR"] == "false"

    def test_enterprise_mode(self, fake_reader):
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(fake_reader, enterprise=True, type="country").filter(headers)
        assert attrs == {
            "country": "United States",
            "state": "California",
            "city": "Mountain View",
            "postal": "94043",
            "latitude": "37.386",
            "longitude": "-122.0838",
            "location_accuracy": "1000",
            "user_type": "hosting",
            "connection_type": "CORPORATE",
            "isp": "Google LLC",
            "proxy_legal": "false",
            "anonymous_ip": "true",
            "anonymous_vpn": "false",
            "tor_exit_node": "false",
        }
        assert headers["X-LOCATION-ACCURACY"] == "1000"
        assert headers["X-CONNECTION-TYPE"] == "CORPORATE"

    def test_enterprise_failure_writes_only_anonymity(self):
        reader = FakeReader({("anonymous_ip", "8.8.8.8"): anonymous_response(True, False, False)})
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(reader, enterprise=True).filter(headers)
        assert attrs == {"anonymous_ip": "true", "anonymous_vpn": "false", "tor_exit_node": "false"}

    def test_enterprise_empty_strings_not_written(self):
        reader = FakeReader({
            ("enterprise", "8.8.8.8"): enterprise_response(country="US", city=""),
            ("anonymous_ip", "8.8.8.8"): anonymous_response(),
        })
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(reader, enterprise=True).filter(headers)
        assert "city" not in attrs
        assert "X-CITY" not in headers
        assert attrs["country"] == "US"
        assert attrs["proxy_legal"] == "false"

    def test_overwrites_existing_header(self, fake_reader):
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        headers.append("X-COUNTRY", "spoofed")
        headers.append("X-COUNTRY", "spoofed-again")
        make_filter(fake_reader, type="country").filter(headers)
        assert headers.getlist("X-COUNTRY") == ["United States"]

    def test_resolution_error_writes_nothing(self, fake_reader):
        headers = request_headers(X_Forwarded_For="10.0.0.1")
        attrs = make_filter(fake_reader, type="city").filter(headers)
        assert attrs == {}
        assert list(headers.keys()) == ["x-forwarded-for"]

    def test_custom_remote_ip_header(self, fake_reader):
        headers = request_headers(X_Real_IP="8.8.8.8")
        attrs = make_filter(fake_reader, type="country", remoteIpHeader="X-Real-IP").filter(headers)
        assert attrs == {"country": "United States"}

    def test_repeated_requests_hit_engine_once(self, fake_reader):
        request_filter = make_filter(fake_reader, type="city")
        first = request_filter.filter(request_headers(X_Forwarded_For="8.8.8.8"))
        second = request_filter.filter(request_headers(X_Forwarded_For="8.8.8.8"))
        assert first == second
        assert len(fake_reader.calls) == 1

    def test_mode_fixed_at_construction(self, fake_reader):
        request_filter = make_filter(fake_reader, type="city", enterprise=True)
        assert request_filter.mode is LookupMode.ENTERPRISE


def test_missing_database_fails_construction():
    with pytest.raises(ConfigurationError):
        GeoIpRequestFilter(make_config())


class TestHeaderEncoding:
    """Values outside latin-1 are percent-encoded before write-back"""

    def test_latin1_value_written_as_is(self):
        reader = FakeReader({("city", "8.8.8.8"): city_response("Switzerland", "Zürich", "Zürich")})
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(reader, type="city").filter(headers)
        assert attrs["city"] == "Zürich"
        assert headers["X-CITY"] == "Zürich"

    def test_non_latin1_value_percent_encoded(self):
        reader = FakeReader({("city", "8.8.8.8"): city_response("Romania", "Iași", "Iași")})
        headers = request_headers(X_Forwarded_For="8.8.8.8")
        attrs = make_filter(reader, type="city").filter(headers)
        assert attrs == {"country": "Romania", "state": "Ia%C8%99i", "city": "Ia%C8%99i"}
        assert headers["X-STATE"] == "Ia%C8%99i"

    def test_header_value_keeps_spaces_and_escapes_percent(self):
        assert header_value("Plzeňský kraj") == "Plze%C5%88sk%C3%BD kraj"
        assert header_value("100% ň") == "100%25 %C5%88"
        assert header_value("100%") == "100%"


def filter_outcome(outcome):
    return REGISTRY.get_sample_value("geoenrich_filter_requests_total", {"outcome": outcome}) or 0


class TestOutcomes:
    """Filter outcomes counted in Prometheus"""

    def test_resolved_without_attributes_counts_as_enriched(self):
        reader = FakeReader({("country", "8.8.8.8"): country_response(None)})
        before = filter_outcome("enriched")
        attrs = make_filter(reader, type="country").filter(request_headers(X_Forwarded_For="8.8.8.8"))
        assert attrs == {}
        assert filter_outcome("enriched") == before + 1
        assert filter_outcome("empty") == 0

    def test_resolution_error_counted(self, fake_reader):
        before = filter_outcome("resolution_error")
        make_filter(fake_reader, type="city").filter(request_headers(X_Forwarded_For="10.0.0.1"))
        assert filter_outcome("resolution_error") == before + 1
