"""
Tests for ItineraryBuilder

Covers flight/ground leg selection, per-leg degradation to `unavailable`,
date propagation between legs and aggregate cost/duration.
"""

from datetime import date
from unittest.mock import AsyncMock

import httpx

import pytest

from conftest import make_offer
from tripcore.amadeus.client import AmadeusClient
from tripcore.errors import InvalidInput, ResolutionError, UpstreamUnavailable
from tripcore.flights.search import FlightSearchService
from tripcore.geo.resolver import LocationResolver
from tripcore.routing.builder import ItineraryBuilder
from tripcore.types import Coordinates, TravelMode, Waypoint

LHR = Waypoint(kind="airport", identifier="LHR")
MAD = Waypoint(kind="airport", identifier="MAD")
CDG = Waypoint(kind="airport", identifier="CDG")
LONDON_HOTEL = Waypoint(kind="hotel", identifier="H-LON-001")
MADRID_HOTEL = Waypoint(kind="hotel", identifier="H-MAD-001")
HEATHROW_BY_POSITION = Waypoint(kind="airport", coordinates=Coordinates(latitude=51.4700, longitude=-0.4543))
COVENT_GARDEN = Waypoint(kind="custom", coordinates=Coordinates(latitude=51.5117, longitude=-0.1240))


@pytest.fixture
def flight_search():
    search = AsyncMock()
    search.search.return_value = []
    return search


@pytest.fixture
def builder(lookup, flight_search):
    return ItineraryBuilder(LocationResolver(lookup), flight_search, ground_leg_cost=25.0, departure_hour=9)


class TestFlightLegs:
    async def test_cheapest_offer_is_selected(self, builder, flight_search):
        flight_search.search.return_value = [
            make_offer("1", 300.0),
            make_offer("2", 250.0, duration_iso="PT2H45M", minutes=165),
            make_offer("3", 400.0),
        ]

        itinerary = await builder.build(LHR, MAD, [], "2025-10-15", passengers=2)

        assert len(itinerary.legs) == 1
        leg = itinerary.legs[0]
        assert leg.type == "flight"
        assert leg.estimated is False
        assert leg.flight.id == "2"
        assert leg.duration_minutes == 165
        assert itinerary.total_cost == 250.0
        assert itinerary.total_duration_minutes == 165
        assert itinerary.currency == "EUR"
        assert itinerary.failed_legs == []
        flight_search.search.assert_awaited_once_with("LHR", "MAD", date(2025, 10, 15), 2)

    async def test_empty_offers_make_leg_unavailable_and_return_still_attempted(self, builder, flight_search):
        flight_search.search.side_effect = [
            [],
            [make_offer("r1", 180.0, origin="MAD", destination="LHR",
                        departure="2025-10-22T18:00:00", arrival="2025-10-22T19:30:00")],
        ]

        itinerary = await builder.build(LHR, MAD, None, "2025-10-15", "2025-10-22")

        assert [leg.type for leg in itinerary.legs] == ["unavailable", "flight"]
        assert itinerary.legs[0].error == "No flight offers found"
        assert itinerary.legs[1].from_.identifier == "MAD"
        assert itinerary.legs[1].to.identifier == "LHR"
        assert itinerary.legs[1].departure_date == date(2025, 10, 22)
        assert itinerary.failed_legs == [0]
        assert itinerary.total_cost == 180.0
        assert flight_search.search.await_count == 2

    async def test_upstream_failure_degrades_only_that_leg(self, builder, flight_search):
        outbound = [make_offer("a", 120.0, origin="LHR", destination="CDG")]
        flight_search.search.side_effect = [
            outbound,
            UpstreamUnavailable("HTTP 503"),
        ]

        itinerary = await builder.build(LHR, MAD, [CDG], "2025-10-15")

        assert [leg.type for leg in itinerary.legs] == ["flight", "unavailable"]
        assert "HTTP 503" in itinerary.legs[1].error
        assert itinerary.failed_legs == [1]
        assert itinerary.legs[0].flight.id == outbound[0].id

    async def test_every_leg_failing_still_returns_itinerary(self, builder, flight_search):
        flight_search.search.side_effect = UpstreamUnavailable("unreachable")

        itinerary = await builder.build(LHR, MAD, [CDG], "2025-10-15", "2025-10-20")

        assert [leg.type for leg in itinerary.legs] == ["unavailable"] * 3
        assert itinerary.failed_legs == [0, 1, 2]
        assert itinerary.total_cost == 0
        assert itinerary.total_duration_minutes == 0
        assert itinerary.total_distance_km > 0


class TestGroundLegs:
    async def test_non_airport_ends_use_ground_estimates(self, builder, flight_search):
        flight_search.search.return_value = [
            make_offer("x", 99.0, departure="2025-10-15T21:00:00", arrival="2025-10-16T00:30:00",
                       duration_iso="PT2H30M", minutes=150),
        ]

        itinerary = await builder.build(LONDON_HOTEL, MADRID_HOTEL, [LHR, MAD], "2025-10-15")

        types = [leg.type for leg in itinerary.legs]
        assert types == ["ground", "flight", "ground"]
        first, flight, last = itinerary.legs
        assert first.mode == TravelMode.DRIVING
        assert first.estimated is True
        assert first.cost == 25.0
        assert flight.departure_date == date(2025, 10, 15)
        # The flight lands after midnight, so the transfer happens the next day
        assert last.departure_date == date(2025, 10, 16)
        assert itinerary.total_cost == pytest.approx(25.0 + 99.0 + 25.0)
        assert itinerary.total_duration_minutes == first.duration_minutes + 150 + last.duration_minutes

    async def test_ground_mode_never_searches_flights(self, builder, flight_search):
        itinerary = await builder.build(LHR, CDG, [], "2025-10-15", mode="transit")

        assert itinerary.legs[0].type == "ground"
        assert itinerary.legs[0].mode == TravelMode.TRANSIT
        assert itinerary.failed_legs == []
        flight_search.search.assert_not_awaited()

    async def test_long_ground_leg_pushes_next_leg_date(self, builder, flight_search):
        # ~1,250 km by car is roughly 21 hours, so the second leg leaves the next day
        itinerary = await builder.build(LHR, MADRID_HOTEL, [MAD], "2025-10-15", mode="driving")

        assert itinerary.legs[0].departure_date == date(2025, 10, 15)
        assert itinerary.legs[1].departure_date == date(2025, 10, 16)


class TestValidation:
    @pytest.mark.parametrize("passengers", [0, 10, "2", True])
    async def test_passenger_bounds(self, builder, passengers):
        with pytest.raises(InvalidInput):
            await builder.build(LHR, MAD, [], "2025-10-15", passengers=passengers)

    async def test_return_before_departure(self, builder):
        with pytest.raises(InvalidInput):
            await builder.build(LHR, MAD, [], "2025-10-15", "2025-10-10")

    async def test_unknown_mode(self, builder):
        with pytest.raises(InvalidInput):
            await builder.build(LHR, MAD, [], "2025-10-15", mode="teleport")

    async def test_unparseable_date(self, builder):
        with pytest.raises(InvalidInput):
            await builder.build(LHR, MAD, [], "banana")

    async def test_unresolvable_waypoint_is_fatal(self, builder, flight_search):
        with pytest.raises(ResolutionError):
            await builder.build(LHR, Waypoint(kind="airport", identifier="XXX"), [], "2025-10-15")
        flight_search.search.assert_not_awaited()


class TestMixedWaypoints:
    async def test_airport_without_code_becomes_ground_leg(self, builder, flight_search):
        itinerary = await builder.build(HEATHROW_BY_POSITION, MAD, [], "2025-10-15")

        leg = itinerary.legs[0]
        assert leg.type == "ground"
        assert leg.mode == TravelMode.DRIVING
        assert itinerary.failed_legs == []
        flight_search.search.assert_not_awaited()

    async def test_airport_without_code_with_real_flight_search(self, lookup, cache):
        amadeus = AsyncMock()
        builder = ItineraryBuilder(LocationResolver(lookup), FlightSearchService(amadeus, cache))

        itinerary = await builder.build(HEATHROW_BY_POSITION, MAD, [], "2025-10-15")

        assert [leg.type for leg in itinerary.legs] == ["ground"]
        amadeus.search_flight_offers.assert_not_awaited()

    async def test_custom_then_airport_chain(self, builder, flight_search):
        flight_search.search.return_value = [make_offer("f", 140.0, origin="LHR", destination="CDG")]

        itinerary = await builder.build(COVENT_GARDEN, CDG, [LHR], "2025-10-15")

        assert [leg.type for leg in itinerary.legs] == ["ground", "flight"]
        assert itinerary.legs[0].from_.identifier is None
        assert itinerary.legs[0].to.identifier == "LHR"
        assert itinerary.total_cost == pytest.approx(25.0 + 140.0)
        flight_search.search.assert_awaited_once_with("LHR", "CDG", date(2025, 10, 15), 1)

    async def test_custom_to_airport_to_airport_to_custom(self, builder, flight_search):
        flight_search.search.return_value = []

        itinerary = await builder.build(COVENT_GARDEN, HEATHROW_BY_POSITION, [LHR, CDG], "2025-10-15")

        assert [leg.type for leg in itinerary.legs] == ["ground", "unavailable", "ground"]
        assert itinerary.failed_legs == [1]
        assert flight_search.search.await_count == 1


class TestUpstreamDegradation:
    async def test_malformed_token_response_marks_leg_unavailable(self, lookup, cache):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "weird"})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = AmadeusClient(client_id="id", client_secret="secret", http=http, retry_delay=0)
        builder = ItineraryBuilder(LocationResolver(lookup), FlightSearchService(client, cache))

        itinerary = await builder.build(LHR, MAD, [], "2025-10-15")

        assert [leg.type for leg in itinerary.legs] == ["unavailable"]
        assert "malformed" in itinerary.legs[0].error
        assert itinerary.failed_legs == [0]
        await client.aclose()


class TestCacheIsolation:
    async def test_editing_flight_leg_leaves_search_result_intact(self, builder, flight_search):
        offers = [make_offer("1", 300.0)]
        flight_search.search.return_value = offers

        itinerary = await builder.build(LHR, MAD, [], "2025-10-15")
        itinerary.legs[0].flight.price_total = 1.0
        itinerary.legs[0].flight.segments[0].carrier = "XX"

        assert offers[0].price_total == 300.0
        assert offers[0].segments[0].carrier == "IB"
