from datetime import date
from typing import Iterable, Optional

from tripcore.geo.geomath import distance_km, duration_minutes
from tripcore.types import FlightOffer, ResolvedPoint, RouteLeg, TravelMode


def ground_leg(origin: ResolvedPoint, destination: ResolvedPoint, mode: TravelMode,
               cost: float = 0.0, departure_date: Optional[date] = None) -> RouteLeg:
    """Straight-line estimate between two resolved points."""
    km = distance_km(origin.coordinates, destination.coordinates)
    return RouteLeg(
        from_=origin,
        to=destination,
        distance_km=round(km, 1),
        duration_minutes=duration_minutes(km, mode),
        mode=mode,
        type="ground",
        estimated=True,
        cost=cost,
        departure_date=departure_date,
    )


def flight_leg(origin: ResolvedPoint, destination: ResolvedPoint, offer: FlightOffer,
               departure_date: date) -> RouteLeg:
    km = distance_km(origin.coordinates, destination.coordinates)
    return RouteLeg(
        from_=origin,
        to=destination,
        distance_km=round(km, 1),
        duration_minutes=offer.total_duration_minutes,
        mode=TravelMode.FLYING,
        type="flight",
        estimated=False,
        cost=offer.price_total,
        departure_date=departure_date,
        flight=offer.model_copy(deep=True),
    )


def unavailable_leg(origin: ResolvedPoint, destination: ResolvedPoint, departure_date: date,
                    reason: str) -> RouteLeg:
    """Placeholder for a flight leg with no bookable offer; contributes no cost or time."""
    km = distance_km(origin.coordinates, destination.coordinates)
    return RouteLeg(
        from_=origin,
        to=destination,
        distance_km=round(km, 1),
        duration_minutes=0,
        mode=TravelMode.FLYING,
        type="unavailable",
        estimated=True,
        cost=0.0,
        departure_date=departure_date,
        error=reason,
    )


def total_distance(legs: Iterable[RouteLeg]) -> float:
    return round(sum(leg.distance_km for leg in legs), 1)


def total_duration(legs: Iterable[RouteLeg]) -> int:
    return sum(leg.duration_minutes for leg in legs)
