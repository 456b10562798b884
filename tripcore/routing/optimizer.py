"""Greedy nearest-neighbour ordering of stops.

This is a heuristic, not a TSP solver: from the current tail of the route it
always steps to the closest remaining stop, breaking ties by the stop's
position in the request. Tours can be visibly longer than the optimum.
"""

from typing import List, Union

from tripcore.geo.geomath import distance_km, duration_minutes
from tripcore.geo.resolver import LocationResolver
from tripcore.obs.logger import log_event
from tripcore.routing.legs import ground_leg, total_distance, total_duration
from tripcore.types import Itinerary, Objective, ResolvedPoint, TravelMode, Waypoint, as_objective, as_travel_mode
from tripcore.utils.dates import get_current_datetime

ALGORITHM = "nearest_neighbor"


def _cost(a: ResolvedPoint, b: ResolvedPoint, mode: TravelMode, objective: Objective) -> float:
    km = distance_km(a.coordinates, b.coordinates)
    if objective == Objective.TIME:
        return duration_minutes(km, mode)
    return km


def nearest_neighbor_order(start: ResolvedPoint, stops: List[ResolvedPoint], mode: TravelMode,
                           objective: Objective) -> List[ResolvedPoint]:
    route = [start]
    remaining = list(stops)
    while remaining:
        current = route[-1]
        best_idx = 0
        best_cost = _cost(current, remaining[0], mode, objective)
        for idx in range(1, len(remaining)):
            c = _cost(current, remaining[idx], mode, objective)
            # strict comparison keeps the first occurrence on ties
            if c < best_cost:
                best_idx, best_cost = idx, c
        route.append(remaining.pop(best_idx))
    return route


class RouteOptimizer:
    def __init__(self, resolver: LocationResolver):
        self.resolver = resolver

    async def optimize(self, start: Waypoint, stops: List[Waypoint],
                       mode: Union[TravelMode, str] = TravelMode.DRIVING,
                       objective: Union[Objective, str] = Objective.DISTANCE) -> Itinerary:
        mode = as_travel_mode(mode)
        objective = as_objective(objective)

        # Resolve everything up front so a bad stop aborts before any leg exists
        resolved_start = await self.resolver.resolve_point(start)
        resolved_stops = await self.resolver.resolve_all(stops)

        route = nearest_neighbor_order(resolved_start, resolved_stops, mode, objective)
        legs = [ground_leg(a, b, mode) for a, b in zip(route, route[1:])]

        log_event("route_optimized", stops=len(stops), mode=mode.value,
                  objective=objective.value, order=[p.identifier or p.kind for p in route])

        return Itinerary(
            legs=legs,
            total_distance_km=total_distance(legs),
            total_duration_minutes=total_duration(legs),
            mode=mode,
            objective=objective,
            algorithm=ALGORITHM,
            calculated_at=get_current_datetime(),
        )
