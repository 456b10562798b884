"""Narrow contracts for the collaborators the routing core consumes."""

from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from tripcore.types import FlightOffer


class LocationLookup(Protocol):
    async def lookup(self, kind: str, identifier: str) -> Optional[Dict[str, Any]]:
        """Return a record with ``latitude``/``longitude`` or None when unknown."""
        ...


class FlightOfferSearch(Protocol):
    async def search(self, origin: str, destination: str, departure_date: date,
                     passengers: int = 1) -> List[FlightOffer]:
        """Return offers for one leg; raise UpstreamUnavailable on failure."""
        ...
