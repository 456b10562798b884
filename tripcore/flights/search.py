"""Flight-offer search as consumed by the itinerary builder.

Wraps the Amadeus client with the response cache (short TTL, prices are
volatile) and a circuit breaker so a failing upstream is not hammered.
"""

from datetime import date
from typing import List, Optional
import time

from tripcore.amadeus.client import AmadeusClient
from tripcore.amadeus.transform import from_amadeus
from tripcore.cache.policies import CacheTTL
from tripcore.cache.response_cache import ResponseCache, generate_cache_key
from tripcore.config import settings
from tripcore.errors import UpstreamUnavailable
from tripcore.infrastructure.resilience import CircuitBreaker
from tripcore.obs.logger import log_event
from tripcore.obs.metrics import inc_counter, record_timing
from tripcore.types import FlightOffer


class FlightSearchService:
    def __init__(self, amadeus_client: AmadeusClient, cache: ResponseCache,
                 breaker: Optional[CircuitBreaker] = None, ttl: Optional[CacheTTL] = None):
        self.amadeus_client = amadeus_client
        self.cache = cache
        self.ttl = ttl or CacheTTL()
        self.breaker = breaker or CircuitBreaker(
            name="amadeus_api",
            failure_threshold=settings.AMADEUS_FAILURE_THRESHOLD,
            recovery_timeout=settings.AMADEUS_RECOVERY_TIMEOUT_SECONDS,
        )

    @staticmethod
    def cache_key(origin: str, destination: str, departure_date: date, passengers: int) -> str:
        return generate_cache_key("flights", origin.upper(), destination.upper(),
                                  departure_date.isoformat(), passengers)

    async def search(self, origin: str, destination: str, departure_date: date,
                     passengers: int = 1) -> List[FlightOffer]:
        key = self.cache_key(origin, destination, departure_date, passengers)
        return await self.cache.get_or_compute(
            key,
            self.ttl.flights,
            lambda: self._fetch(origin, destination, departure_date, passengers),
        )

    async def _fetch(self, origin: str, destination: str, departure_date: date,
                     passengers: int) -> List[FlightOffer]:
        start = time.monotonic()
        try:
            payload = await self.breaker.async_call(
                self.amadeus_client.search_flight_offers,
                origin, destination, departure_date, passengers,
            )
        except UpstreamUnavailable as e:
            inc_counter("upstream_failures_total", {"service": "amadeus"})
            log_event("flight_search_failed", level="WARNING", origin=origin,
                      destination=destination, date=departure_date, error=str(e))
            raise
        finally:
            record_timing("flight_search_latency_ms", (time.monotonic() - start) * 1000.0)
        return from_amadeus(payload)
