"""Great-circle distance and straight-line travel-time estimates.

No road network, traffic or terrain is considered: durations are the
haversine distance divided by a fixed average speed per mode.
"""

from typing import Union
import math

from tripcore.errors import InvalidInput
from tripcore.types import Coordinates, TravelMode

EARTH_RADIUS_KM = 6371.0

# Average speeds in km/h
SPEED_KMH = {
    TravelMode.DRIVING: 60.0,
    TravelMode.WALKING: 5.0,
    TravelMode.TRANSIT: 30.0,
    TravelMode.FLYING: 800.0,
}


def _check_range(point: Coordinates) -> None:
    lat, lon = point.latitude, point.longitude
    if lat is None or lon is None:
        raise InvalidInput("Coordinates require both latitude and longitude")
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        raise InvalidInput(f"Coordinates out of range: ({lat}, {lon})")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in km."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    # Float error can push a marginally above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def distance_km(a: Coordinates, b: Coordinates) -> float:
    _check_range(a)
    _check_range(b)
    if a.latitude == b.latitude and a.longitude == b.longitude:
        return 0.0
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def speed_for_mode(mode: Union[TravelMode, str, None]) -> float:
    """Average speed for a mode; anything unknown travels at driving speed."""
    try:
        return SPEED_KMH[TravelMode(mode)]
    except ValueError:
        return SPEED_KMH[TravelMode.DRIVING]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def duration_minutes(distance: float, mode: Union[TravelMode, str, None]) -> int:
    if distance is None or distance < 0:
        raise InvalidInput(f"Distance must be non-negative, got {distance}")
    return round_half_up(distance / speed_for_mode(mode) * 60)
