"""Resolve a free-text address into a town name with a guaranteed fallback."""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional, Tuple

from onboarding.core.config import Settings, get_settings
from onboarding.models import ProviderResult, TownResult
from onboarding.vendors.nominatim import GeocodingClient, LookupFailure

logger = logging.getLogger(__name__)

# Structured address fields inspected in priority order.
TOWN_FIELDS: Tuple[str, ...] = ("city", "town", "municipality", "county", "suburb")
MIN_SEGMENT_LENGTH = 3


class AddressCache:
    """Exact-key cache of resolved towns, optionally bounded by size and age."""

    def __init__(self, maxsize: int = 0, ttl: float = 0.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, TownResult]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, address: str) -> Optional[TownResult]:
        with self._lock:
            entry = self._entries.get(address)
            if entry is None:
                return None
            stored_at, result = entry
            if self.ttl and self._clock() - stored_at > self.ttl:
                del self._entries[address]
                return None
            self._entries.move_to_end(address)
            return result

    def put(self, address: str, result: TownResult) -> None:
        with self._lock:
            self._entries[address] = (self._clock(), result)
            self._entries.move_to_end(address)
            if self.maxsize and len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: object) -> bool:
        return address in self._entries


def address_segments(address: str) -> List[str]:
    """Comma-separated parts, trimmed, narrowest-first, dropping short ones."""
    parts = [part.strip() for part in address.split(",")]
    return [part for part in reversed(parts) if len(part) >= MIN_SEGMENT_LENGTH]


def pick_town(address: dict, fields: Iterable[str] = TOWN_FIELDS) -> Optional[str]:
    for name in fields:
        value = (address.get(name) or "").strip()
        if value:
            return value
    return None


class TownResolver:
    def __init__(
        self,
        client: Optional[GeocodingClient] = None,
        cache: Optional[AddressCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client or GeocodingClient(settings)
        self.cache = cache if cache is not None else AddressCache(settings.address_cache_size, settings.address_cache_ttl)
        self.fallback_town = settings.fallback_town
        self.country = settings.geocoder_country

    def resolve_town(self, full_address) -> TownResult:
        """Best-effort town for ``full_address``; never raises."""
        if not isinstance(full_address, str) or not full_address.strip():
            return TownResult(self.fallback_town, "", "fallback")

        cached = self.cache.get(full_address)
        if cached is not None:
            logger.debug("Address cache hit for %r", full_address)
            return TownResult(cached.town, cached.display_name, "cache")

        for segment in address_segments(full_address):
            query = f"{segment}, {self.country}" if self.country else segment
            try:
                match: ProviderResult = self.client.lookup(query)
            except LookupFailure as exc:
                logger.warning("Town lookup failed for segment %r: %s", segment, exc)
                continue

            town = pick_town(match.address)
            if town:
                result = TownResult(town.upper(), match.display_name, "geocoder")
                self.cache.put(full_address, result)
                logger.info("Resolved %r to %s", full_address, result.town)
                return result

        logger.info("No town found for %r; using fallback %s", full_address, self.fallback_town)
        result = TownResult(self.fallback_town, full_address, "fallback")
        self.cache.put(full_address, result)
        return result
