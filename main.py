import os
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tripcore.amadeus.client import AmadeusClient
from tripcore.cache.response_cache import ResponseCache
from tripcore.config import settings
from tripcore.errors import InvalidInput, ResolutionError, UpstreamUnavailable
from tripcore.flights.search import FlightSearchService
from tripcore.obs.logger import log_event
from tripcore.obs.metrics import get_metrics_snapshot
from tripcore.obs.middleware import ObservabilityMiddleware
from tripcore.reference.lookup import CachedLocationLookup, ReferenceLocationDb
from tripcore.routing.service import create_route_service
from tripcore.types import Coordinates, Objective, TravelMode, Waypoint

load_dotenv()

ROOT = os.path.dirname(os.path.abspath(__file__))


def _data_path(path: str) -> str:
    return path if os.path.isabs(path) else os.path.join(ROOT, path)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log_event("startup", env=settings.APP_ENV)

    # One cache per process, shared by every consumer
    app.state.cache = ResponseCache()
    app.state.reference_db = ReferenceLocationDb(csv_path=_data_path(settings.LOCATIONS_DATA_PATH))
    app.state.amadeus = AmadeusClient()
    app.state.flight_search = FlightSearchService(app.state.amadeus, app.state.cache)
    app.state.routes = create_route_service(
        cache=app.state.cache,
        lookup=CachedLocationLookup(app.state.reference_db, app.state.cache),
        flight_search=app.state.flight_search,
        reference_db=app.state.reference_db,
    )
    app.state.cache.start()

    yield

    # Shutdown
    await app.state.cache.stop()
    await app.state.amadeus.aclose()
    log_event("shutdown")


app = FastAPI(
    title="Travel Route Core",
    version="1.0.0",
    lifespan=lifespan
)


class DirectRouteRequest(BaseModel):
    origin: Waypoint
    destination: Waypoint
    mode: TravelMode = TravelMode.DRIVING


class OptimizeRequest(BaseModel):
    start: Optional[Waypoint] = Field(None, alias="startLocation")
    destinations: List[Waypoint]
    mode: TravelMode = TravelMode.DRIVING
    objective: Objective = Objective.TIME

    model_config = {"populate_by_name": True}


class MatrixRequest(BaseModel):
    origins: List[Waypoint]
    destinations: List[Waypoint]
    mode: TravelMode = TravelMode.DRIVING


class ItineraryRequest(BaseModel):
    origin: Waypoint
    destination: Waypoint
    waypoints: List[Waypoint] = Field(default_factory=list)
    departure_date: str = Field(..., alias="departureDate")
    return_date: Optional[str] = Field(None, alias="returnDate")
    passengers: int = 1
    mode: TravelMode = TravelMode.FLYING

    model_config = {"populate_by_name": True}


class InvalidateRequest(BaseModel):
    pattern: str


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse({"error": str(exc), "type": "invalid_input"}, status_code=400)


@app.exception_handler(ResolutionError)
async def resolution_error_handler(request: Request, exc: ResolutionError):
    return JSONResponse(
        {"error": str(exc), "type": "resolution_error", "kind": exc.kind, "identifier": exc.identifier},
        status_code=404,
    )


@app.exception_handler(UpstreamUnavailable)
async def upstream_handler(request: Request, exc: UpstreamUnavailable):
    return JSONResponse({"error": str(exc), "type": "upstream_unavailable", "service": exc.service},
                        status_code=503)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "travel-route-core"}


@app.get("/health/cache")
async def cache_health(request: Request):
    return request.app.state.routes.cache_health()


@app.get("/metrics")
async def metrics(request: Request):
    snapshot = get_metrics_snapshot()
    routes = getattr(request.app.state, "routes", None)
    flight_search = getattr(request.app.state, "flight_search", None)
    snapshot.update({
        "cache": routes.cache_stats() if routes else {"size": 0, "keys": []},
        "circuit_breaker": flight_search.breaker.get_state() if flight_search else None,
    })
    return snapshot


@app.post("/api/routes/direct")
async def direct_route(request: Request, body: DirectRouteRequest):
    leg = await request.app.state.routes.calculate_direct_route(body.origin, body.destination, body.mode)
    return {"success": True, "data": leg.model_dump(mode="json", by_alias=True)}


@app.post("/api/routes/optimize")
async def optimize_route(request: Request, body: OptimizeRequest):
    itinerary = await request.app.state.routes.optimize_multi_destination_route(
        body.start, body.destinations, body.mode, body.objective
    )
    return {"success": True, "data": itinerary.model_dump(mode="json", by_alias=True)}


@app.post("/api/routes/matrix")
async def travel_time_matrix(request: Request, body: MatrixRequest):
    matrix = await request.app.state.routes.get_travel_time_matrix(body.origins, body.destinations, body.mode)
    return {"success": True, "data": [[cell.model_dump() for cell in row] for row in matrix]}


@app.post("/api/routes/stats")
async def route_statistics(request: Request, body: DirectRouteRequest):
    stats = await request.app.state.routes.get_route_statistics(body.origin, body.destination)
    return {"success": True, "data": stats.model_dump(mode="json", by_alias=True)}


@app.post("/api/routes/itinerary")
async def flight_itinerary(request: Request, body: ItineraryRequest):
    envelope = await request.app.state.routes.build_flight_itinerary(
        body.origin, body.destination, body.waypoints, body.departure_date,
        body.return_date, body.passengers, body.mode,
    )
    return envelope.model_dump(mode="json", by_alias=True)


@app.get("/api/airports/nearby")
async def nearby_airports(
    request: Request,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = None,
):
    center = Coordinates(latitude=latitude, longitude=longitude)
    airports = request.app.state.routes.find_nearby_airports(center, radius)
    return {"success": True, "data": airports, "count": len(airports),
            "radiusKm": radius if radius is not None else settings.NEARBY_AIRPORT_RADIUS_KM}


@app.get("/api/airports/city/{city}")
async def city_airports(request: Request, city: str, country: Optional[str] = None):
    airports = request.app.state.routes.find_city_airports(city, country)
    return {"success": True, "data": airports, "count": len(airports),
            "searchCity": city, "searchCountry": country or "all"}


@app.get("/admin/cache/stats")
async def cache_stats(request: Request):
    return request.app.state.routes.cache_stats()


@app.post("/admin/cache/invalidate")
async def invalidate_cache(request: Request, body: InvalidateRequest):
    removed = request.app.state.routes.invalidate(body.pattern)
    return {"status": "invalidated", "pattern": body.pattern, "removed": removed}


# Apply middleware
app = ObservabilityMiddleware(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
        log_level="info"
    )
