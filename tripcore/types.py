from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tripcore.errors import InvalidInput


class TravelMode(str, Enum):
    DRIVING = "driving"
    WALKING = "walking"
    TRANSIT = "transit"
    FLYING = "flying"


class Objective(str, Enum):
    TIME = "time"
    DISTANCE = "distance"


def as_travel_mode(value: Union[TravelMode, str]) -> TravelMode:
    try:
        return TravelMode(value)
    except ValueError as e:
        raise InvalidInput(f"Unknown travel mode: {value!r}") from e


def as_objective(value: Union[Objective, str]) -> Objective:
    try:
        return Objective(value)
    except ValueError as e:
        raise InvalidInput(f"Unknown optimisation objective: {value!r}") from e


WaypointKind = Literal["airport", "hotel", "custom"]
LegType = Literal["ground", "flight", "unavailable"]


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Waypoint(BaseModel):
    kind: WaypointKind
    identifier: Optional[str] = Field(None, description="IATA code or hotel id; absent for custom points")
    coordinates: Optional[Coordinates] = None

    def label(self) -> str:
        if self.identifier:
            return f"{self.kind}:{self.identifier}"
        if self.coordinates:
            return f"{self.kind}:{self.coordinates.latitude},{self.coordinates.longitude}"
        return self.kind


class ResolvedPoint(BaseModel):
    kind: WaypointKind
    identifier: Optional[str] = None
    coordinates: Coordinates


class FlightSegment(BaseModel):
    departure_airport: str
    departure_time: str
    arrival_airport: str
    arrival_time: str
    carrier: str
    flight_number: str


class FlightOffer(BaseModel):
    id: str
    price_total: float
    currency: str
    duration_iso: str      # e.g., 'PT11H30M'
    total_duration_minutes: int
    carrier: str
    segments: List[FlightSegment] = Field(default_factory=list)

    @property
    def departure_iso(self) -> Optional[str]:
        return self.segments[0].departure_time if self.segments else None

    @property
    def arrival_iso(self) -> Optional[str]:
        return self.segments[-1].arrival_time if self.segments else None


class RouteLeg(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: ResolvedPoint = Field(..., alias="from")
    to: ResolvedPoint
    distance_km: float = Field(..., ge=0)
    duration_minutes: int = Field(..., ge=0)
    mode: TravelMode
    type: LegType = "ground"
    estimated: bool = True
    cost: float = 0.0
    departure_date: Optional[date] = None
    flight: Optional[FlightOffer] = None
    error: Optional[str] = None


class Itinerary(BaseModel):
    legs: List[RouteLeg] = Field(default_factory=list)
    total_distance_km: float = 0.0
    total_duration_minutes: int = 0
    total_cost: Optional[float] = None
    currency: Optional[str] = None
    mode: TravelMode
    objective: Optional[Objective] = None
    algorithm: str
    calculated_at: datetime
    failed_legs: List[int] = Field(default_factory=list)


class Ok(BaseModel):
    status: Literal["ok"] = "ok"
    data: Itinerary


class PartialFailure(BaseModel):
    status: Literal["partial_failure"] = "partial_failure"
    data: Itinerary
    failed_legs: List[int]


ItineraryEnvelope = Annotated[Union[Ok, PartialFailure], Field(discriminator="status")]


class MatrixCell(BaseModel):
    distance_km: float
    duration_minutes: int


class RouteStatistics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: ResolvedPoint = Field(..., alias="from")
    to: ResolvedPoint
    distance_km: float
    durations_minutes: Dict[TravelMode, int]


class CacheEntry(BaseModel):
    key: str
    value: Any
    expires_at: float  # epoch seconds
