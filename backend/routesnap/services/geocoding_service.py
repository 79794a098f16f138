"""
RouteSnap Backend — Geocoding Service
=======================================

What:  Turns a normalized stop address into latitude/longitude.
Why:   Map pins need coordinates; the parser deliberately never does I/O,
       so the lookup lives here and RouteService sequences it after parsing.
How:   GET against a Nominatim-compatible search endpoint with httpx,
       tenacity retries for transient failures, in-memory cache per address.
Who:   Called by RouteService.geocode_stops().

Result Semantics:
    Coordinates  → the geocoder found the address
    None         → the geocoder answered but has no match
    GeocodingError → the geocoder could not be reached or kept failing;
                     the caller decides whether to keep the stop

Caching:
    Route sheets repeat addresses (multiple parcels to the same building).
    Found and not-found answers are cached by normalized address; failures
    are not, so a later scan retries them. The cache is LRU-bounded by
    GEOCODER_CACHE_SIZE so a long-lived worker does not grow without limit.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    before_sleep_log,
)
from tenacity.wait import wait_base

from routesnap.config import settings
from routesnap.exceptions import GeocodingError
from routesnap.parser import normalize_address
from routesnap.services.retry_policy import backoff_wait

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return False


class GeocodingService:
    """
    Async geocoder client with retries and a per-process cache.

    Args:
        base_url:   Search endpoint; defaults to settings.geocoder_url.
        transport:  Optional httpx transport (tests pass httpx.MockTransport).
        retry_wait: Optional tenacity wait strategy (tests pass wait_none()).
        cache_size: Max cached addresses; defaults to settings.geocoder_cache_size.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: Optional[wait_base] = None,
        cache_size: Optional[int] = None,
    ):
        self.base_url = base_url or settings.geocoder_url
        self.transport = transport
        self.retry_wait = retry_wait or backoff_wait()
        self.cache_size = cache_size or settings.geocoder_cache_size
        # Least recently used first
        self._cache: "OrderedDict[str, Optional[Coordinates]]" = OrderedDict()

    def clear_cache(self) -> None:
        self._cache.clear()

    def _remember(self, key: str, coordinates: Optional[Coordinates]) -> None:
        self._cache[key] = coordinates
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    def _params(self, address: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {"q": address, "format": "jsonv2", "limit": 1}
        country_codes = settings.geocoder_country_codes_list
        if country_codes:
            params["countrycodes"] = ",".join(country_codes)
        return params

    async def _search(self, address: str) -> Any:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.geocoder_timeout),
            headers={"User-Agent": settings.geocoder_user_agent},
            transport=self.transport,
        ) as client:
            response = await client.get(self.base_url, params=self._params(address))
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _first_result(payload: Any) -> Optional[Coordinates]:
        """Nominatim returns a list of matches with string lat/lon."""
        if not isinstance(payload, list) or not payload:
            return None
        first = payload[0]
        try:
            return Coordinates(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Geocoder returned an unreadable result: %r", first)
            return None

    async def geocode(self, address: str) -> Optional[Coordinates]:
        """
        Look up one address.

        Returns:
            Coordinates, or None when the address is blank or not found.

        Raises:
            GeocodingError: network failure or persistent 429/5xx after retries,
                or a non-retryable HTTP error (e.g. 403 from a blocked client).
        """
        key = normalize_address(address or "")
        if not key:
            return None
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(settings.retry_max_attempts),
                wait=self.retry_wait,
                before_sleep=before_sleep_log(logger, logging.WARNING),
            ):
                with attempt:
                    payload = await self._search(key)
        except RetryError as e:
            last = e.last_attempt.exception() if e.last_attempt else None
            logger.error("Geocoding '%s' failed after retries: %s", key, last)
            raise GeocodingError(
                message="Address lookup failed after multiple attempts",
                address=key,
                context={"attempts": settings.retry_max_attempts, "error": str(last)},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Geocoding '%s' failed: %s", key, e)
            raise GeocodingError(
                message="Address lookup failed",
                address=key,
                context={"error_type": type(e).__name__},
            )

        coordinates = self._first_result(payload)
        self._remember(key, coordinates)
        if coordinates is None:
            logger.info("No geocoder match for '%s'", key)
        return coordinates


# ── Singleton Instance ────────────────────────────────────────────────────
geocoding_service = GeocodingService()
