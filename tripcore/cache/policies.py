"""TTL policy per kind of cached response."""

from dataclasses import dataclass

from tripcore.config import settings


@dataclass(frozen=True)
class CacheTTL:
    flights: int = settings.FLIGHT_CACHE_TTL_SECONDS     # volatile prices, rate-limited upstream
    airports: int = settings.AIRPORT_CACHE_TTL_SECONDS   # reference data changes rarely
    hotels: int = settings.HOTEL_CACHE_TTL_SECONDS
    routes: int = settings.ROUTE_CACHE_TTL_SECONDS

    def for_kind(self, kind: str) -> int:
        if kind == "airport":
            return self.airports
        if kind == "hotel":
            return self.hotels
        return self.routes
