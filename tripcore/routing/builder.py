"""Multi-leg flight + ground itineraries.

Legs are built strictly in order: each leg's departure date comes from the
clock left behind by the previous leg (flight arrival time or estimated
ground duration). A leg whose flight search returns nothing, or whose
upstream call fails, is recorded as ``unavailable`` and the build continues.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

from tripcore.config import settings
from tripcore.errors import InvalidInput, UpstreamUnavailable
from tripcore.geo.geomath import duration_minutes
from tripcore.geo.resolver import LocationResolver
from tripcore.interfaces import FlightOfferSearch
from tripcore.obs.logger import log_event
from tripcore.rank.selector import cheapest_offer
from tripcore.routing.legs import flight_leg, ground_leg, total_distance, total_duration, unavailable_leg
from tripcore.types import Itinerary, ResolvedPoint, RouteLeg, TravelMode, Waypoint, as_travel_mode
from tripcore.utils.dates import format_duration_minutes, get_current_datetime, parse_iso_datetime, to_date

ALGORITHM = "sequential_legs"
MAX_PASSENGERS = 9


class ItineraryBuilder:
    def __init__(self, resolver: LocationResolver, flight_search: FlightOfferSearch,
                 ground_leg_cost: Optional[float] = None, departure_hour: Optional[int] = None):
        self.resolver = resolver
        self.flight_search = flight_search
        self.ground_leg_cost = settings.GROUND_LEG_ESTIMATED_COST if ground_leg_cost is None else ground_leg_cost
        self.departure_hour = settings.DEFAULT_DEPARTURE_HOUR if departure_hour is None else departure_hour

    async def build(self, origin: Waypoint, destination: Waypoint, waypoints: Optional[List[Waypoint]],
                    departure_date: Union[str, date], return_date: Union[str, date, None] = None,
                    passengers: int = 1,
                    mode: Union[TravelMode, str] = TravelMode.FLYING) -> Itinerary:
        mode = as_travel_mode(mode)
        passengers = self._validate_passengers(passengers)
        outbound_date = to_date(departure_date, settings.TZ)
        inbound_date = to_date(return_date, settings.TZ) if return_date else None
        if inbound_date is not None and inbound_date < outbound_date:
            raise InvalidInput("returnDate must not be before departureDate")

        points = await self.resolver.resolve_all([origin, *(waypoints or []), destination])

        legs: List[RouteLeg] = []
        clock = datetime.combine(outbound_date, time(hour=self.departure_hour))
        for a, b in zip(points, points[1:]):
            leg = await self._build_leg(a, b, clock.date(), passengers, mode)
            legs.append(leg)
            clock = self._advance(clock, leg)

        if inbound_date is not None:
            legs.append(await self._build_leg(points[-1], points[0], inbound_date, passengers, mode))

        failed = [i for i, leg in enumerate(legs) if leg.type == "unavailable"]
        currency = next((leg.flight.currency for leg in legs if leg.flight), settings.AMADEUS_CURRENCY)
        itinerary = Itinerary(
            legs=legs,
            total_distance_km=total_distance(legs),
            total_duration_minutes=total_duration(legs),
            total_cost=round(sum(leg.cost for leg in legs), 2),
            currency=currency,
            mode=mode,
            algorithm=ALGORITHM,
            calculated_at=get_current_datetime(),
            failed_legs=failed,
        )
        log_event("itinerary_built", legs=len(legs), failed_legs=failed,
                  total_cost=itinerary.total_cost, currency=currency,
                  total_duration=format_duration_minutes(itinerary.total_duration_minutes))
        return itinerary

    async def _build_leg(self, a: ResolvedPoint, b: ResolvedPoint, leg_date: date,
                         passengers: int, mode: TravelMode) -> RouteLeg:
        if mode == TravelMode.FLYING and self._is_bookable_airport(a) and self._is_bookable_airport(b):
            return await self._flight_leg(a, b, leg_date, passengers)
        ground_mode = TravelMode.DRIVING if mode == TravelMode.FLYING else mode
        return ground_leg(a, b, ground_mode, cost=self.ground_leg_cost, departure_date=leg_date)

    async def _flight_leg(self, a: ResolvedPoint, b: ResolvedPoint, leg_date: date,
                          passengers: int) -> RouteLeg:
        try:
            offers = await self.flight_search.search(a.identifier, b.identifier, leg_date, passengers)
        except UpstreamUnavailable as e:
            log_event("flight_leg_unavailable", level="WARNING", origin=a.identifier,
                      destination=b.identifier, date=leg_date, reason="upstream", error=str(e))
            return unavailable_leg(a, b, leg_date, f"Flight search unavailable: {e}")

        best = cheapest_offer(offers)
        if best is None:
            log_event("flight_leg_unavailable", level="WARNING", origin=a.identifier,
                      destination=b.identifier, date=leg_date, reason="no_offers")
            return unavailable_leg(a, b, leg_date, "No flight offers found")
        return flight_leg(a, b, best, leg_date)

    @staticmethod
    def _is_bookable_airport(point: ResolvedPoint) -> bool:
        # Coordinate-only airports have no IATA code to search with
        return point.kind == "airport" and bool(point.identifier)

    @staticmethod
    def _advance(clock: datetime, leg: RouteLeg) -> datetime:
        if leg.flight is not None:
            arrival = parse_iso_datetime(leg.flight.arrival_iso)
            if arrival is not None:
                return max(clock, arrival.replace(tzinfo=None))
            return clock + timedelta(minutes=leg.duration_minutes)
        if leg.type == "unavailable":
            # Assume the traveller still covers the hop by air
            return clock + timedelta(minutes=duration_minutes(leg.distance_km, TravelMode.FLYING))
        return clock + timedelta(minutes=leg.duration_minutes)

    @staticmethod
    def _validate_passengers(passengers: int) -> int:
        if isinstance(passengers, bool) or not isinstance(passengers, int):
            raise InvalidInput("passengers must be an integer")
        if passengers < 1 or passengers > MAX_PASSENGERS:
            raise InvalidInput(f"passengers must be between 1 and {MAX_PASSENGERS}")
        return passengers
