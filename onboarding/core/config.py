"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    registry_database_url: str
    supplier_database_url: str
    worker_port: int = 8080
    fallback_town: str = "LAGOS"
    export_default_town: str = "LAGOS"
    geocoder_url: str = "https://nominatim.openstreetmap.org/search"
    geocoder_user_agent: str = "supplier-onboarding/1.0"
    geocoder_country: str = "Nigeria"
    geocoder_country_codes: str = "ng"
    geocoder_timeout: float = 5.0
    geocoder_min_interval: float = 1.0
    address_cache_size: int = 1024
    address_cache_ttl: float = 0.0
    registry_search_limit: int = 20
    auth_tokens: FrozenSet[str] = field(default_factory=frozenset)


def _split_tokens(raw: str) -> FrozenSet[str]:
    return frozenset(token.strip() for token in raw.split(",") if token.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    registry_database_url = os.getenv("REGISTRY_DATABASE_URL", "")
    supplier_database_url = os.getenv("SUPPLIER_DATABASE_URL", "")
    worker_port = int(os.getenv("WORKER_PORT") or os.getenv("PORT") or "8080")
    fallback_town = (os.getenv("FALLBACK_TOWN") or "LAGOS").strip().upper()
    export_default_town = (os.getenv("EXPORT_DEFAULT_TOWN") or fallback_town).strip().upper()
    auth_tokens = _split_tokens(os.getenv("AUTH_TOKENS", ""))

    if not registry_database_url:
        logger.warning("REGISTRY_DATABASE_URL is not set; company search will fail.")
    if not supplier_database_url:
        logger.warning("SUPPLIER_DATABASE_URL is not set; supplier inserts will fail.")
    if not auth_tokens:
        logger.warning("AUTH_TOKENS is not configured; every API request will be rejected.")

    return Settings(
        registry_database_url=registry_database_url,
        supplier_database_url=supplier_database_url,
        worker_port=worker_port,
        fallback_town=fallback_town,
        export_default_town=export_default_town,
        geocoder_url=os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/search"),
        geocoder_user_agent=os.getenv("GEOCODER_USER_AGENT", "supplier-onboarding/1.0"),
        geocoder_country=os.getenv("GEOCODER_COUNTRY", "Nigeria"),
        geocoder_country_codes=os.getenv("GEOCODER_COUNTRY_CODES", "ng"),
        geocoder_timeout=float(os.getenv("GEOCODER_TIMEOUT", "5")),
        geocoder_min_interval=float(os.getenv("GEOCODER_MIN_INTERVAL", "1.0")),
        address_cache_size=int(os.getenv("ADDRESS_CACHE_SIZE", "1024")),
        address_cache_ttl=float(os.getenv("ADDRESS_CACHE_TTL", "0")),
        registry_search_limit=int(os.getenv("REGISTRY_SEARCH_LIMIT", "20")),
        auth_tokens=auth_tokens,
    )
