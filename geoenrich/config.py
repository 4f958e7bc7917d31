"""
Configuration module for GeoIP enrichment
"""

import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .enrich.models import LookupMode
from .errors import ConfigurationError


def parse_bool(value: str) -> bool:
    """Parse a boolean from an environment-style string"""
    return value.strip().lower() in ("true", "1", "yes", "on")

API_VERSION = os.getenv("APP_VERSION", "0.1.0")
API_PREFIX = "/v1"

# Optional YAML file holding the maxmind section
GEOIP_CONFIG_FILE = os.getenv("GEOIP_CONFIG_FILE", "")

DEFAULT_REMOTE_IP_HEADER = "X-Forwarded-For"
DEFAULT_CACHE_TTL = 300
DEFAULT_CACHE_MAX_ENTRIES = 10000

_NON_ENTERPRISE_TYPES = (LookupMode.COUNTRY, LookupMode.CITY, LookupMode.ANONYMOUS)


class MaxMindConfig(BaseModel):
    """Settings for the GeoIP enrichment filter (camelCase keys accepted)"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    database_file_path: str = Field(..., alias="databaseFilePath", min_length=1,
                                    description="Path to the GeoIP2 .mmdb database")
    remote_ip_header: str = Field(DEFAULT_REMOTE_IP_HEADER, alias="remoteIpHeader", min_length=1,
                                  description="Header carrying the client address")
    type: LookupMode = Field(LookupMode.CITY, description="country, city or anonymous")
    enterprise: bool = Field(False, description="Use the enterprise lookup path")
    cache_ttl: int = Field(DEFAULT_CACHE_TTL, alias="cacheTTL", ge=0,
                           description="Lookup cache entry lifetime in seconds (0 = no expiry)")
    cache_max_entries: int = Field(DEFAULT_CACHE_MAX_ENTRIES, alias="cacheMaxEntries", ge=1,
                                   description="Lookup cache capacity")

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
        return value

    @field_validator("type")
    @classmethod
    def _non_enterprise_type(cls, value: LookupMode) -> LookupMode:
        if value not in _NON_ENTERPRISE_TYPES:
            raise ValueError("type must be one of country, city, anonymous")
        return value

    @property
    def lookup_mode(self) -> LookupMode:
        """Effective mode; enterprise overrides type"""
        return LookupMode.ENTERPRISE if self.enterprise else self.type


def build_config(values: Dict[str, Any]) -> MaxMindConfig:
    try:
        return MaxMindConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid GeoIP configuration: {e}") from e


def load_config(environ: Optional[Dict[str, str]] = None) -> MaxMindConfig:
    """Build the config from GEOIP_* environment variables"""
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {"databaseFilePath": env.get("GEOIP_DATABASE_FILE_PATH", "")}
    optional = {
        "remoteIpHeader": "GEOIP_REMOTE_IP_HEADER",
        "type": "GEOIP_TYPE",
        "cacheTTL": "GEOIP_CACHE_TTL",
        "cacheMaxEntries": "GEOIP_CACHE_MAX_ENTRIES",
    }
    for key, var in optional.items():
        if env.get(var):
            values[key] = env[var]
    if env.get("GEOIP_ENTERPRISE"):
        values["enterprise"] = parse_bool(env["GEOIP_ENTERPRISE"])
    return build_config(values)


def load_config_file(path: str) -> MaxMindConfig:
    """Build the config from a YAML file, optionally nested under 'maxmind'"""
    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read GeoIP config file {path}: {e}") from e
    if not isinstance(document, dict):
        raise ConfigurationError(f"GeoIP config file {path} must hold a mapping")
    section = document.get("maxmind", document)
    if not isinstance(section, dict):
        raise ConfigurationError(f"'maxmind' section in {path} must be a mapping")
    return build_config(section)


def get_config() -> MaxMindConfig:
    """Config for the running service: YAML file if configured, else env"""
    if GEOIP_CONFIG_FILE:
        return load_config_file(GEOIP_CONFIG_FILE)
    return load_config()
