# tripcore/config.py
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging", "test"] = "dev"
    TZ: str = "Europe/London"

    # Amadeus
    AMADEUS_CLIENT_ID: str = ""
    AMADEUS_CLIENT_SECRET: str = ""
    AMADEUS_ENV: str = "sandbox"  # or "production"
    AMADEUS_CURRENCY: str = "USD"
    AMADEUS_MAX_OFFERS: int = 5

    # Circuit breaker around flight search
    AMADEUS_FAILURE_THRESHOLD: int = 5
    AMADEUS_RECOVERY_TIMEOUT_SECONDS: int = 60

    # Response cache
    CACHE_SWEEP_INTERVAL_SECONDS: int = 300  # 5 minutes
    FLIGHT_CACHE_TTL_SECONDS: int = 300  # prices are volatile
    AIRPORT_CACHE_TTL_SECONDS: int = 3600
    HOTEL_CACHE_TTL_SECONDS: int = 1800
    ROUTE_CACHE_TTL_SECONDS: int = 1800

    # Itineraries
    GROUND_LEG_ESTIMATED_COST: float = 25.0
    DEFAULT_DEPARTURE_HOUR: int = 9
    NEARBY_AIRPORT_RADIUS_KM: float = 100.0

    # Reference data (airports and hotels with coordinates)
    LOCATIONS_DATA_PATH: str = "data/locations.csv"

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
