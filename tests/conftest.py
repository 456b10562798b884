import os
import sys
import asyncio
import inspect

import pytest

# Ensure project root is on sys.path so `import tripcore` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tripcore.cache.response_cache import ResponseCache  # noqa: E402
from tripcore.types import FlightOffer, FlightSegment  # noqa: E402

LOCATIONS_CSV = os.path.join(ROOT, "data", "locations.csv")


def pytest_pyfunc_call(pyfuncitem):
    """Allow running async tests without pytest-asyncio.

    If the test function is a coroutine, run it in a fresh event loop.
    """
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        funcargs = pyfuncitem.funcargs
        sig = inspect.signature(testfunction)
        # Filter only the parameters that the test function expects
        allowed = {name: funcargs[name] for name in sig.parameters.keys() if name in funcargs}
        asyncio.run(testfunction(**allowed))
        return True
    return None


class FakeClock:
    """Manually advanced stand-in for time.time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DictLookup:
    """LocationLookup backed by a plain dict, counting calls."""

    def __init__(self, records):
        self.records = records
        self.calls = []

    async def lookup(self, kind, identifier):
        self.calls.append((kind, identifier))
        return self.records.get((kind, identifier))


def make_offer(offer_id: str, price: float, duration_iso: str = "PT2H30M", minutes: int = 150,
               origin: str = "LHR", destination: str = "MAD",
               departure: str = "2025-10-15T10:00:00", arrival: str = "2025-10-15T13:30:00",
               currency: str = "EUR", carrier: str = "IB") -> FlightOffer:
    return FlightOffer(
        id=offer_id,
        price_total=price,
        currency=currency,
        duration_iso=duration_iso,
        total_duration_minutes=minutes,
        carrier=carrier,
        segments=[FlightSegment(
            departure_airport=origin,
            departure_time=departure,
            arrival_airport=destination,
            arrival_time=arrival,
            carrier=carrier,
            flight_number=f"{carrier}3163",
        )],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(sweep_interval_seconds=300, clock=clock)


@pytest.fixture
def records():
    return {
        ("airport", "LHR"): {"latitude": 51.4700, "longitude": -0.4543},
        ("airport", "MAD"): {"latitude": 40.4983, "longitude": -3.5676},
        ("airport", "CDG"): {"latitude": 49.0097, "longitude": 2.5479},
        ("hotel", "H-LON-001"): {"latitude": 51.5101, "longitude": -0.1209},
        ("hotel", "H-MAD-001"): {"latitude": 40.4169, "longitude": -3.7035},
        ("hotel", "H-UNMAPPED"): {"latitude": None, "longitude": None},
    }


@pytest.fixture
def lookup(records):
    return DictLookup(records)
