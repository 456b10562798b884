from typing import Any, Dict, List

from tripcore.errors import UpstreamUnavailable
from tripcore.types import FlightOffer, FlightSegment
from tripcore.utils.dates import iso_duration_to_minutes


def _segment(s: Dict[str, Any]) -> FlightSegment:
    return FlightSegment(
        departure_airport=s["departure"]["iataCode"],
        departure_time=s["departure"]["at"],
        arrival_airport=s["arrival"]["iataCode"],
        arrival_time=s["arrival"]["at"],
        carrier=s.get("carrierCode", ""),
        flight_number=f'{s.get("carrierCode", "")}{s.get("number", "")}',
    )


def from_amadeus(json_obj: Dict[str, Any]) -> List[FlightOffer]:
    """Map a flight-offers response onto FlightOffer models (outbound itinerary only)."""
    items = []
    try:
        for o in json_obj.get("data", []):
            price = o["price"]
            itin = o["itineraries"][0]
            dur = itin["duration"]
            segments = [_segment(s) for s in itin.get("segments", [])]
            if o.get("validatingAirlineCodes"):
                carrier = o["validatingAirlineCodes"][0]
            elif segments:
                carrier = segments[0].carrier
            else:
                carrier = "N/A"
            items.append(FlightOffer(
                id=str(o.get("id", "")),
                price_total=float(price.get("grandTotal") or price["total"]),
                currency=price.get("currency", "USD"),
                duration_iso=dur,
                total_duration_minutes=iso_duration_to_minutes(dur),
                carrier=carrier,
                segments=segments,
            ))
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise UpstreamUnavailable(f"Unexpected flight offer shape: {type(e).__name__}: {e}") from e
    return items
