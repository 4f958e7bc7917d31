"""
Tests for Prometheus metrics functionality
"""

from geoenrich.services.prometheus_metrics import prometheus_metrics, PrometheusMetrics


class TestPrometheusMetrics:
    """Test the PrometheusMetrics class."""

    def test_prometheus_metrics_initialization(self):
        """Test Prometheus metrics initializes correctly."""
        metrics = PrometheusMetrics()
        assert metrics is not None

    def test_geoip_lookup_counters(self):
        metrics = PrometheusMetrics()
        metrics.increment_geoip_lookups("city", "ok")
        metrics.increment_geoip_lookups("city", "not_found")
        metrics.set_geoip_loaded(True)

    def test_cache_metrics(self):
        metrics = PrometheusMetrics()
        metrics.increment_cache_hits()
        metrics.increment_cache_misses(2)
        metrics.increment_cache_evictions()
        metrics.set_cache_size(10)

    def test_get_metrics(self):
        """Test getting metrics in Prometheus format."""
        prometheus_metrics.increment_filter_requests("enriched")
        metrics_data = prometheus_metrics.get_metrics()
        assert isinstance(metrics_data, bytes)
        assert b"geoenrich_filter_requests_total" in metrics_data
        assert b"geoenrich_geoip_lookups_total" in metrics_data

    def test_get_content_type(self):
        """Test getting content type."""
        assert "text/plain" in prometheus_metrics.get_content_type()
