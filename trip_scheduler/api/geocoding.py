# trip_scheduler/api/geocoding.py
from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import googlemaps
import googlemaps.exceptions
import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trip_scheduler.api.config import get_geocoding_config, get_google_maps_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocodeResult:
    """One candidate position for a free-text place description."""

    lat: float
    lng: float
    label: str = ""
    kind: Optional[str] = None


class Geocoder(Protocol):
    """Anything that can turn a place description into candidate positions.

    An empty list means "nothing found" and is not an error.
    """

    async def search(self, query: str) -> List[GeocodeResult]:
        ...


# ─── Google Maps ────────────────────────────────────────────────────────────────
class GoogleMapsGeocoder:
    """Geocoder backed by the Google Maps Geocoding API."""

    def __init__(self, api_key: str, timeout: float = 10.0,
                 client: googlemaps.Client | None = None):
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> googlemaps.Client:
        """Return a cached googlemaps.Client instance."""
        if self._client is None:
            logger.info(f"Initializing Google Maps client with key: {self._api_key[:10]}...")
            self._client = googlemaps.Client(key=self._api_key, timeout=self._timeout)
        return self._client

    @retry(
        retry=retry_if_exception_type(
            (googlemaps.exceptions.Timeout, googlemaps.exceptions.TransportError)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    def _geocode(self, query: str) -> List[GeocodeResult]:
        logger.debug(f"Geocoding place with Google: {query}")
        results = self._get_client().geocode(query, language="en")
        found = []
        for item in results or []:
            loc = item["geometry"]["location"]
            types = item.get("types") or [None]
            found.append(GeocodeResult(
                lat=float(loc["lat"]),
                lng=float(loc["lng"]),
                label=item.get("formatted_address", ""),
                kind=types[0],
            ))
        return found

    async def search(self, query: str) -> List[GeocodeResult]:
        return await asyncio.to_thread(self._geocode, query)


# ─── OpenStreetMap Nominatim ────────────────────────────────────────────────────
class NominatimGeocoder:
    """Geocoder backed by OpenStreetMap's Nominatim (no API key needed)."""

    def __init__(self, url: str, user_agent: str, timeout: float = 10.0,
                 limit: int = 5, session: requests.Session | None = None):
        self._url = url
        self._timeout = timeout
        self._limit = limit
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = user_agent

    @retry(
        retry=retry_if_exception_type(
            (requests.exceptions.ConnectionError, requests.exceptions.Timeout)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    def _geocode(self, query: str) -> List[GeocodeResult]:
        logger.debug(f"Geocoding place with Nominatim: {query}")
        response = self._session.get(
            self._url,
            params={"q": query, "format": "json", "limit": self._limit,
                    "accept-language": "en"},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return [
            GeocodeResult(
                lat=float(item["lat"]),
                lng=float(item["lon"]),
                label=item.get("display_name", ""),
                kind=item.get("type"),
            )
            for item in response.json()
        ]

    async def search(self, query: str) -> List[GeocodeResult]:
        return await asyncio.to_thread(self._geocode, query)


# ─── Composition ────────────────────────────────────────────────────────────────
class FallbackGeocoder:
    """Try each provider in turn until one returns results.

    A failing provider is logged and skipped.
    """

    def __init__(self, providers: Sequence[Geocoder]):
        self._providers = list(providers)

    async def search(self, query: str) -> List[GeocodeResult]:
        for provider in self._providers:
            name = type(provider).__name__
            try:
                results = await provider.search(query)
            except Exception as e:
                logger.warning(f"{name} failed for '{query}': {e}")
                continue
            if results:
                return results
            logger.debug(f"{name} found nothing for '{query}'")
        return []


class CachedGeocoder:
    """Keep recent answers so repeated place names cost one lookup.

    Holds at most *max_entries* answers; the least recently used goes first.
    """

    def __init__(self, inner: Geocoder, ttl_seconds: float = 300.0,
                 max_entries: int = 1000):
        self._inner = inner
        self._ttl = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._cache: OrderedDict[str, tuple[float, List[GeocodeResult]]] = OrderedDict()

    @staticmethod
    def _key(query: str) -> str:
        return " ".join(query.lower().split())

    async def search(self, query: str) -> List[GeocodeResult]:
        key = self._key(query)
        hit = self._cache.get(key)
        now = time.monotonic()
        if hit is not None:
            if now - hit[0] < self._ttl:
                self._cache.move_to_end(key)
                return list(hit[1])
            del self._cache[key]

        results = await self._inner.search(query)
        self._cache[key] = (now, list(results))
        while len(self._cache) > self._max_entries:
            self._cache.popitem(last=False)
        return results

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()


def build_geocoder() -> Geocoder:
    """Assemble the configured provider chain, wrapped in a cache."""
    cfg = get_geocoding_config()
    providers: List[Geocoder] = []

    for name in cfg["providers"]:
        if name == "google":
            api_key = get_google_maps_config().get("api_key", "")
            if not api_key:
                logger.warning("No Google Maps API key found in config, skipping Google geocoding")
                continue
            providers.append(GoogleMapsGeocoder(api_key, timeout=cfg["timeout"]))
        elif name == "nominatim":
            providers.append(NominatimGeocoder(
                cfg["nominatim_url"],
                cfg["nominatim_user_agent"],
                timeout=cfg["timeout"],
                limit=cfg["result_limit"],
            ))
        else:
            logger.warning(f"Unknown geocoding provider '{name}' ignored")

    if not providers:
        logger.error("No geocoding provider configured; every lookup will come back empty")

    return CachedGeocoder(
        FallbackGeocoder(providers),
        ttl_seconds=cfg["cache_seconds"],
        max_entries=cfg["cache_size"],
    )


__all__ = [
    "GeocodeResult",
    "Geocoder",
    "GoogleMapsGeocoder",
    "NominatimGeocoder",
    "FallbackGeocoder",
    "CachedGeocoder",
    "build_geocoder",
]
