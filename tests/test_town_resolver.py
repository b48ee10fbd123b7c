import pytest

from onboarding.etl import town_resolver
from onboarding.etl.town_resolver import AddressCache, TownResolver, address_segments, pick_town
from onboarding.models import ProviderResult, TownResult
from onboarding.vendors.nominatim import LookupFailure


class FakeClient:
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.queries = []

    def lookup(self, query):
        self.queries.append(query)
        answer = self.answers.get(query)
        if answer is None:
            raise LookupFailure(f"no results for {query!r}")
        return answer


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def resolver(settings, client):
    return TownResolver(client=client, cache=AddressCache(), settings=settings)


def test_address_segments_reverse_and_drop_short_parts():
    assert address_segments("12 Allen Ave, Ikeja, LA, Lagos") == ["Lagos", "Ikeja", "12 Allen Ave"]


def test_pick_town_uses_priority_order():
    address = {"suburb": "Allen", "town": "Ikeja", "county": "Ikeja LGA"}
    assert pick_town(address) == "Ikeja"
    assert pick_town({"suburb": "Allen"}) == "Allen"
    assert pick_town({"state": "Lagos State"}) is None
    assert town_resolver.TOWN_FIELDS[0] == "city"


@pytest.mark.parametrize("address", ["", "   ", None, 42])
def test_unusable_address_returns_fallback_without_lookup(resolver, client, address):
    result = resolver.resolve_town(address)

    assert result.town == "LAGOS"
    assert result.source == "fallback"
    assert client.queries == []


def test_first_matching_segment_wins_and_is_cached(resolver, client):
    address = "12 Allen Avenue, Ikeja, Lagos State"
    client.answers = {
        "Lagos State, Nigeria": ProviderResult({"state": "Lagos State"}, "Lagos State, Nigeria"),
        "Ikeja, Nigeria": ProviderResult({"city": "Ikeja", "state": "Lagos"}, "Ikeja, Lagos, Nigeria"),
    }

    result = resolver.resolve_town(address)

    assert result == TownResult("IKEJA", "Ikeja, Lagos, Nigeria", "geocoder")
    assert client.queries == ["Lagos State, Nigeria", "Ikeja, Nigeria"]
    assert address in resolver.cache


def test_cached_address_issues_no_new_lookup(resolver, client):
    address = "Plot 5, Trans Amadi, Port Harcourt"
    client.answers = {"Port Harcourt, Nigeria": ProviderResult({"city": "Port Harcourt"}, "Port Harcourt, Rivers")}

    first = resolver.resolve_town(address)
    calls = len(client.queries)
    second = resolver.resolve_town(address)

    assert len(client.queries) == calls
    assert second.town == first.town == "PORT HARCOURT"
    assert second.display_name == first.display_name
    assert second.source == "cache"


def test_cache_key_is_exact_string(resolver, client):
    client.answers = {"Kano, Nigeria": ProviderResult({"city": "Kano"}, "Kano")}

    resolver.resolve_town("Kano")
    resolver.resolve_town("Kano ")

    assert client.queries == ["Kano, Nigeria", "Kano, Nigeria"]


def test_no_match_caches_fallback_with_full_address(resolver, client):
    address = "Block 4, Unknown Estate"

    result = resolver.resolve_town(address)
    again = resolver.resolve_town(address)

    assert result == TownResult("LAGOS", address, "fallback")
    assert client.queries == ["Unknown Estate, Nigeria", "Block 4, Nigeria"]
    assert again.town == "LAGOS"
    assert len(client.queries) == 2


def test_address_cache_evicts_least_recent():
    cache = AddressCache(maxsize=2)
    cache.put("a", TownResult("A", "a", "geocoder"))
    cache.put("b", TownResult("B", "b", "geocoder"))
    cache.get("a")
    cache.put("c", TownResult("C", "c", "geocoder"))

    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 2


def test_address_cache_expires_entries():
    now = [0.0]
    cache = AddressCache(ttl=60, clock=lambda: now[0])
    cache.put("a", TownResult("A", "a", "geocoder"))

    now[0] = 30.0
    assert cache.get("a") is not None
    now[0] = 91.0
    assert cache.get("a") is None
