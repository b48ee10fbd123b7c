"""Client utilities for the Nominatim geocoding API."""

import logging
import threading
import time
from typing import Optional

import requests

from onboarding.core.config import Settings, get_settings
from onboarding.models import ProviderResult

logger = logging.getLogger(__name__)
_SESSION = requests.Session()


class LookupFailure(RuntimeError):
    """Raised when a lookup times out, fails, or matches nothing."""


class GeocodingClient:
    """Serialises lookups and keeps a minimum interval between outbound calls."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        settings = settings or get_settings()
        self.base_url = settings.geocoder_url
        self.user_agent = settings.geocoder_user_agent
        self.country_codes = settings.geocoder_country_codes
        self.timeout = settings.geocoder_timeout
        self.min_interval = settings.geocoder_min_interval
        self.session = session or _SESSION
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    def _wait_turn(self) -> None:
        if self._last_call is None:
            return
        remaining = self.min_interval - (time.monotonic() - self._last_call)
        if remaining > 0:
            time.sleep(remaining)

    def lookup(self, query: str) -> ProviderResult:
        params = {"q": query, "format": "json", "addressdetails": 1, "limit": 1}
        if self.country_codes:
            params["countrycodes"] = self.country_codes

        with self._lock:
            self._wait_turn()
            try:
                response = self.session.get(
                    self.base_url,
                    params=params,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as exc:
                raise LookupFailure(f"lookup failed for {query!r}: {exc}") from exc
            finally:
                self._last_call = time.monotonic()

        if not isinstance(payload, list) or not payload:
            raise LookupFailure(f"no results for {query!r}")

        first = payload[0]
        address = {key: str(value) for key, value in (first.get("address") or {}).items() if value}
        return ProviderResult(address=address, display_name=first.get("display_name") or "")
