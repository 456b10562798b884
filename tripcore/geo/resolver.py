from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from tripcore.errors import ResolutionError
from tripcore.interfaces import LocationLookup
from tripcore.obs.logger import log_event
from tripcore.types import Coordinates, ResolvedPoint, Waypoint


class LocationResolver:
    """Turn logical waypoints into coordinate pairs.

    Explicit coordinates are used as-is; otherwise the identifier is looked up
    through the injected ``LocationLookup``. Nothing is cached here: callers
    that need the same point twice in a request resolve it once and reuse it.
    """

    def __init__(self, lookup: LocationLookup):
        self.lookup = lookup

    async def resolve(self, waypoint: Waypoint) -> Coordinates:
        if waypoint.coordinates is not None:
            return waypoint.coordinates

        if not waypoint.identifier:
            raise ResolutionError(
                f"Waypoint of kind '{waypoint.kind}' has neither identifier nor coordinates",
                kind=waypoint.kind,
            )

        record = await self.lookup.lookup(waypoint.kind, waypoint.identifier)
        if not record:
            log_event("resolution_failed", level="WARNING", kind=waypoint.kind,
                      identifier=waypoint.identifier, reason="not_found")
            raise ResolutionError(
                f"No {waypoint.kind} found for identifier '{waypoint.identifier}'",
                kind=waypoint.kind,
                identifier=waypoint.identifier,
            )
        return self._coordinates_from_record(waypoint, record)

    async def resolve_point(self, waypoint: Waypoint) -> ResolvedPoint:
        coords = await self.resolve(waypoint)
        return ResolvedPoint(kind=waypoint.kind, identifier=waypoint.identifier, coordinates=coords)

    async def resolve_all(self, waypoints: List[Waypoint]) -> List[ResolvedPoint]:
        """Resolve in order; the first failure aborts the whole batch."""
        resolved: List[ResolvedPoint] = []
        for wp in waypoints:
            resolved.append(await self.resolve_point(wp))
        return resolved

    def _coordinates_from_record(self, waypoint: Waypoint, record: Dict[str, Any]) -> Coordinates:
        lat: Optional[Any] = record.get("latitude")
        lon: Optional[Any] = record.get("longitude")
        if lat is None or lon is None or lat == "" or lon == "":
            log_event("resolution_failed", level="WARNING", kind=waypoint.kind,
                      identifier=waypoint.identifier, reason="missing_coordinates")
            raise ResolutionError(
                f"{waypoint.kind} '{waypoint.identifier}' has no stored coordinates",
                kind=waypoint.kind,
                identifier=waypoint.identifier,
            )
        try:
            return Coordinates(latitude=float(lat), longitude=float(lon))
        except (TypeError, ValueError, ValidationError) as e:
            raise ResolutionError(
                f"{waypoint.kind} '{waypoint.identifier}' has invalid coordinates: {e}",
                kind=waypoint.kind,
                identifier=waypoint.identifier,
            ) from e
