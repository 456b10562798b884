import asyncio
import time
from datetime import date
from typing import Any, Dict, Optional

import httpx

from tripcore.config import settings
from tripcore.errors import UpstreamUnavailable
from tripcore.obs.logger import log_event

BASE = "https://test.api.amadeus.com" if settings.AMADEUS_ENV != "production" \
       else "https://api.amadeus.com"


class AmadeusClient:
    """Async Amadeus Self-Service client for flight offers.

    Owns its retry policy: one retry with a short backoff on 5xx responses and
    connection timeouts. Every other failure surfaces as UpstreamUnavailable.
    """

    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 http: Optional[httpx.AsyncClient] = None, retry_delay: float = 1.5):
        self.client_id = client_id if client_id is not None else settings.AMADEUS_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.AMADEUS_CLIENT_SECRET
        self.retry_delay = retry_delay
        self._token: Optional[str] = None
        self._exp = 0.0
        self._http = http or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(connect=3.0, read=20.0, write=12.0, pool=12.0),
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_token(self) -> str:
        if self._token and time.time() < self._exp - 60:
            return self._token
        if not self.client_id or not self.client_secret:
            raise UpstreamUnavailable("Amadeus credentials are not configured")
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            r = await self._http.post(
                f"{BASE}/v1/security/oauth2/token",
                data=data,
                headers={"Accept": "application/json"},
            )
            r.raise_for_status()
            j = r.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(
                f"Amadeus token request failed: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailable(f"Amadeus token request failed: {type(e).__name__}") from e
        if not isinstance(j, dict) or not j.get("access_token"):
            raise UpstreamUnavailable("Amadeus token response malformed")
        self._token = j["access_token"]
        self._exp = time.time() + j.get("expires_in", 1799)
        return self._token

    def _build_params(self, origin: str, destination: str, departure_date: date,
                      adults: int) -> Dict[str, Any]:
        return {
            "originLocationCode": origin.upper(),
            "destinationLocationCode": destination.upper(),
            "departureDate": departure_date.isoformat(),
            "adults": max(1, int(adults)),
            "currencyCode": settings.AMADEUS_CURRENCY,
            "max": settings.AMADEUS_MAX_OFFERS,
        }

    async def search_flight_offers(self, origin: str, destination: str, departure_date: date,
                                   adults: int = 1) -> Dict[str, Any]:
        token = await self._get_token()
        params = self._build_params(origin, destination, departure_date, adults)
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}

        attempt = 0
        while True:
            try:
                r = await self._http.get(
                    f"{BASE}/v2/shopping/flight-offers",
                    params=params,
                    headers=headers,
                    timeout=httpx.Timeout(connect=3.0, read=45.0, write=45.0, pool=12.0),
                )
                r.raise_for_status()
                payload = r.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                log_event("amadeus_http_error", level="ERROR", status=status, attempt=attempt)
                # Retry once only for 5xx
                if 500 <= status < 600 and attempt == 0:
                    attempt += 1
                    await asyncio.sleep(self.retry_delay)
                    continue
                raise UpstreamUnavailable(f"Amadeus flight search failed: HTTP {status}",
                                          status_code=status) from e
            except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.RemoteProtocolError) as e:
                log_event("amadeus_connection_error", level="ERROR", error=type(e).__name__, attempt=attempt)
                if attempt == 0:
                    attempt += 1
                    await asyncio.sleep(self.retry_delay)
                    continue
                raise UpstreamUnavailable(f"Amadeus flight search failed: {type(e).__name__}") from e
            except (httpx.HTTPError, ValueError) as e:
                raise UpstreamUnavailable(f"Amadeus flight search failed: {type(e).__name__}") from e

            if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
                raise UpstreamUnavailable("Amadeus flight search returned a malformed response")
            log_event("amadeus_search_ok", origin=params["originLocationCode"],
                      destination=params["destinationLocationCode"], offers=len(payload["data"]))
            return payload
