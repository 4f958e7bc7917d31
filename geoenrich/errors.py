"""
Error types for GeoIP enrichment
"""

from typing import Optional


class GeoEnrichError(Exception):
    """Base class for enrichment errors"""
    pass


class ConfigurationError(GeoEnrichError):
    """Invalid configuration or an unusable GeoIP database"""
    pass


class AddressParseError(GeoEnrichError, ValueError):
    """Candidate client address is not a valid IPv4/IPv6 address"""

    def __init__(self, candidate: str):
        super().__init__(f"Invalid client address: {candidate!r}")
        self.candidate = candidate


class ResolutionError(GeoEnrichError):
    """
    Lookup-stage failure (database miss or engine error).

    Returned as a value by the resolver rather than raised.
    """

    def __init__(self, address, mode, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"Cannot resolve {address} ({mode}): {reason}")
        self.address = address
        self.mode = mode
        self.reason = reason
        self.cause = cause
