"""Public surface of the routing core, consumed by the HTTP layer.

Every operation returns pydantic models; serialisation is the caller's job.
"""

from typing import Any, Dict, List, Optional, Union
import hashlib
import json
import re

from tripcore.cache.policies import CacheTTL
from tripcore.cache.response_cache import ResponseCache, generate_cache_key
from tripcore.config import settings
from tripcore.errors import InvalidInput
from tripcore.geo.geomath import distance_km, duration_minutes
from tripcore.geo.resolver import LocationResolver
from tripcore.obs.context import operation_var
from tripcore.reference.lookup import ReferenceLocationDb
from tripcore.routing.builder import ItineraryBuilder
from tripcore.routing.legs import ground_leg
from tripcore.routing.optimizer import RouteOptimizer
from tripcore.types import (
    Coordinates, Itinerary, MatrixCell, Objective, Ok, PartialFailure,
    RouteLeg, RouteStatistics, TravelMode, Waypoint, as_objective, as_travel_mode,
)

MIN_DESTINATIONS = 2


def _request_hash(payload: Dict[str, Any]) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.md5(raw.encode()).hexdigest()


def wrap_itinerary(itinerary: Itinerary) -> Union[Ok, PartialFailure]:
    if itinerary.failed_legs:
        return PartialFailure(data=itinerary, failed_legs=list(itinerary.failed_legs))
    return Ok(data=itinerary)


class RouteService:
    def __init__(self, resolver: LocationResolver, optimizer: RouteOptimizer,
                 builder: ItineraryBuilder, cache: ResponseCache,
                 reference_db: Optional[ReferenceLocationDb] = None,
                 ttl: Optional[CacheTTL] = None):
        self.resolver = resolver
        self.optimizer = optimizer
        self.builder = builder
        self.cache = cache
        self.reference_db = reference_db
        self.ttl = ttl or CacheTTL()

    async def calculate_direct_route(self, origin: Waypoint, destination: Waypoint,
                                     mode: Union[TravelMode, str] = TravelMode.DRIVING) -> RouteLeg:
        operation_var.set("direct_route")
        mode = as_travel_mode(mode)
        key = generate_cache_key("route", "direct", origin.label(), destination.label(), mode.value)

        async def compute() -> RouteLeg:
            a = await self.resolver.resolve_point(origin)
            b = await self.resolver.resolve_point(destination)
            return ground_leg(a, b, mode)

        leg = await self.cache.get_or_compute(key, self.ttl.routes, compute)
        return leg.model_copy(deep=True)

    async def optimize_multi_destination_route(self, start: Optional[Waypoint], stops: List[Waypoint],
                                               mode: Union[TravelMode, str] = TravelMode.DRIVING,
                                               objective: Union[Objective, str] = Objective.TIME) -> Itinerary:
        operation_var.set("optimize_route")
        mode = as_travel_mode(mode)
        objective = as_objective(objective)
        if not stops or len(stops) < MIN_DESTINATIONS:
            raise InvalidInput(f"At least {MIN_DESTINATIONS} destinations are required")
        if start is None:
            start, stops = stops[0], stops[1:]

        key = generate_cache_key("route", "optimize", _request_hash({
            "start": start.model_dump(mode="json"),
            "stops": [s.model_dump(mode="json") for s in stops],
            "mode": mode.value,
            "objective": objective.value,
        }))
        itinerary = await self.cache.get_or_compute(
            key, self.ttl.routes, lambda: self.optimizer.optimize(start, stops, mode, objective)
        )
        return itinerary.model_copy(deep=True)

    async def build_flight_itinerary(self, origin: Waypoint, destination: Waypoint,
                                     waypoints: Optional[List[Waypoint]], departure_date: Any,
                                     return_date: Any = None, passengers: int = 1,
                                     mode: Union[TravelMode, str] = TravelMode.FLYING) -> Union[Ok, PartialFailure]:
        operation_var.set("flight_itinerary")
        itinerary = await self.builder.build(
            origin, destination, waypoints, departure_date, return_date, passengers, mode
        )
        return wrap_itinerary(itinerary)

    async def get_travel_time_matrix(self, origins: List[Waypoint], destinations: List[Waypoint],
                                     mode: Union[TravelMode, str] = TravelMode.DRIVING) -> List[List[MatrixCell]]:
        operation_var.set("travel_time_matrix")
        mode = as_travel_mode(mode)
        if not origins or not destinations:
            raise InvalidInput("Both origins and destinations are required")

        resolved_origins = await self.resolver.resolve_all(origins)
        resolved_destinations = await self.resolver.resolve_all(destinations)
        matrix: List[List[MatrixCell]] = []
        for o in resolved_origins:
            row = []
            for d in resolved_destinations:
                km = distance_km(o.coordinates, d.coordinates)
                row.append(MatrixCell(distance_km=round(km, 1), duration_minutes=duration_minutes(km, mode)))
            matrix.append(row)
        return matrix

    async def get_route_statistics(self, origin: Waypoint, destination: Waypoint) -> RouteStatistics:
        operation_var.set("route_statistics")
        a = await self.resolver.resolve_point(origin)
        b = await self.resolver.resolve_point(destination)
        km = distance_km(a.coordinates, b.coordinates)
        return RouteStatistics(
            from_=a,
            to=b,
            distance_km=round(km, 1),
            durations_minutes={m: duration_minutes(km, m) for m in TravelMode},
        )

    def find_nearby_airports(self, center: Coordinates, radius_km: Optional[float] = None) -> List[Dict[str, Any]]:
        if self.reference_db is None:
            raise InvalidInput("Nearby airport search needs reference data")
        radius = settings.NEARBY_AIRPORT_RADIUS_KM if radius_km is None else radius_km
        if radius <= 0:
            raise InvalidInput("radius_km must be positive")
        return self.reference_db.airports_near(center, radius)

    def find_city_airports(self, city: str, country: Optional[str] = None) -> List[Dict[str, Any]]:
        if self.reference_db is None:
            raise InvalidInput("City airport search needs reference data")
        if not city or not city.strip():
            raise InvalidInput("city is required")
        airports = [self.reference_db.get("airport", code) for code in self.reference_db.airports_in_city(city)]
        if country:
            airports = [a for a in airports if a["country"].lower() == country.strip().lower()]
        return airports

    # Cache admin

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def cache_health(self) -> Dict[str, Any]:
        return self.cache.health()

    def invalidate(self, pattern: str) -> int:
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise InvalidInput(f"Invalid cache pattern: {e}") from e
        return self.cache.invalidate_pattern(regex)


def create_route_service(cache: ResponseCache, lookup, flight_search,
                         reference_db: Optional[ReferenceLocationDb] = None) -> RouteService:
    """Wire resolver, optimizer and builder around one shared cache."""
    resolver = LocationResolver(lookup)
    return RouteService(
        resolver=resolver,
        optimizer=RouteOptimizer(resolver),
        builder=ItineraryBuilder(resolver, flight_search),
        cache=cache,
        reference_db=reference_db,
    )
