"""
Prometheus metrics for GeoIP enrichment
"""

from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
import os

# Build info
BUILD_INFO = Gauge(
    'geoenrich_build_info',
    'Build information',
    ['version']
)

# Database state
GEOIP_LOADED = Gauge(
    'geoenrich_geoip_loaded',
    'GeoIP database loaded status (1=loaded, 0=not loaded)'
)

GEOIP_LAST_REFRESH = Gauge(
    'geoenrich_geoip_last_refresh_timestamp',
    'Timestamp of the last GeoIP database (re)open'
)

# Engine lookups (cache misses only)
GEOIP_LOOKUPS_TOTAL = Counter(
    'geoenrich_geoip_lookups_total',
    'Total number of queries issued to the GeoIP database',
    ['query', 'outcome']
)

# Lookup cache
CACHE_HITS_TOTAL = Counter(
    'geoenrich_cache_hits_total',
    'Total number of lookup cache hits'
)

CACHE_MISSES_TOTAL = Counter(
    'geoenrich_cache_misses_total',
    'Total number of lookup cache misses'
)

CACHE_EVICTIONS_TOTAL = Counter(
    'geoenrich_cache_evictions_total',
    'Total number of entries evicted from the lookup cache'
)

CACHE_SIZE = Gauge(
    'geoenrich_cache_size',
    'Current number of entries in the lookup cache'
)

# Filter outcomes
FILTER_REQUESTS_TOTAL = Counter(
    'geoenrich_filter_requests_total',
    'Requests seen by the enrichment filter',
    ['outcome']
)

ATTRIBUTES_WRITTEN_TOTAL = Counter(
    'geoenrich_attributes_written_total',
    'Enrichment attributes written onto requests',
    ['attribute']
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        self._setup_build_info()

    def _setup_build_info(self):
        """Set up build information gauge."""
        version = os.getenv("APP_VERSION", "0.1.0")
        BUILD_INFO.labels(version=version).set(1)

    def set_geoip_loaded(self, loaded: bool):
        """Set GeoIP loaded status."""
        GEOIP_LOADED.set(1 if loaded else 0)

    def set_geoip_last_refresh(self, timestamp: float):
        """Set GeoIP last refresh timestamp."""
        GEOIP_LAST_REFRESH.set(timestamp)

    def increment_geoip_lookups(self, query: str, outcome: str, count: int = 1):
        """Increment database query counter."""
        GEOIP_LOOKUPS_TOTAL.labels(query=query, outcome=outcome).inc(count)

    def increment_cache_hits(self, count: int = 1):
        CACHE_HITS_TOTAL.inc(count)

    def increment_cache_misses(self, count: int = 1):
        CACHE_MISSES_TOTAL.inc(count)

    def increment_cache_evictions(self, count: int = 1):
        CACHE_EVICTIONS_TOTAL.inc(count)

    def set_cache_size(self, size: int):
        CACHE_SIZE.set(size)

    def increment_filter_requests(self, outcome: str, count: int = 1):
        """Increment filter outcome counter."""
        FILTER_REQUESTS_TOTAL.labels(outcome=outcome).inc(count)

    def increment_attributes_written(self, attribute: str, count: int = 1):
        ATTRIBUTES_WRITTEN_TOTAL.labels(attribute=attribute).inc(count)

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get the content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST

# Global metrics instance
prometheus_metrics = PrometheusMetrics()
