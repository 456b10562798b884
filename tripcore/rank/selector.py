from typing import List, Optional
from tripcore.types import FlightOffer

def cheapest_offer(options: List[FlightOffer]) -> Optional[FlightOffer]:
    """Lowest price wins; equal prices fall back to the shorter flight, then response order."""
    if not options:
        return None
    ranked = sorted(
        enumerate(options),
        key=lambda pair: (pair[1].price_total, pair[1].total_duration_minutes, pair[0]),
    )
    return ranked[0][1]
