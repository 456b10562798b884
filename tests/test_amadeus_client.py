from datetime import date

import httpx
import pytest

from tripcore.amadeus.client import AmadeusClient
from tripcore.errors import UpstreamUnavailable


def make_client(handler, **kwargs) -> AmadeusClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AmadeusClient(client_id="id", client_secret="secret", http=http, retry_delay=0, **kwargs)


def token_response():
    return httpx.Response(200, json={"access_token": "TEST_TOKEN", "expires_in": 1799})


async def test_builds_expected_query_and_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return token_response()
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    client = make_client(handler)
    payload = await client.search_flight_offers("lhr", "mad", date(2025, 10, 15), adults=2)
    await client.aclose()

    assert payload == {"data": []}
    assert len(seen) == 1
    request = seen[0]
    assert request.url.path == "/v2/shopping/flight-offers"
    assert request.headers["Authorization"] == "Bearer TEST_TOKEN"
    params = request.url.params
    assert params["originLocationCode"] == "LHR"
    assert params["destinationLocationCode"] == "MAD"
    assert params["departureDate"] == "2025-10-15"
    assert params["adults"] == "2"


async def test_token_is_reused():
    token_calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            token_calls.append(request)
            return token_response()
        return httpx.Response(200, json={"data": []})

    client = make_client(handler)
    await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.search_flight_offers("LHR", "CDG", date(2025, 10, 15))
    await client.aclose()

    assert len(token_calls) == 1


async def test_retries_once_on_5xx():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return token_response()
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(502, json={"errors": []})
        return httpx.Response(200, json={"data": [{"id": "1"}]})

    client = make_client(handler)
    payload = await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.aclose()

    assert len(attempts) == 2
    assert payload["data"][0]["id"] == "1"


async def test_second_5xx_is_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return token_response()
        return httpx.Response(503)

    client = make_client(handler)
    with pytest.raises(UpstreamUnavailable) as exc:
        await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.aclose()
    assert exc.value.status_code == 503


async def test_4xx_is_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return token_response()
        attempts.append(request)
        return httpx.Response(429, json={"errors": [{"title": "Too many requests"}]})

    client = make_client(handler)
    with pytest.raises(UpstreamUnavailable):
        await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.aclose()
    assert len(attempts) == 1


async def test_timeout_is_retried_then_surfaces():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return token_response()
        raise httpx.ReadTimeout("slow", request=request)

    client = make_client(handler)
    with pytest.raises(UpstreamUnavailable):
        await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.aclose()


async def test_malformed_body():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return token_response()
        return httpx.Response(200, json={"unexpected": True})

    client = make_client(handler)
    with pytest.raises(UpstreamUnavailable):
        await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.aclose()


async def test_missing_credentials():
    client = AmadeusClient(client_id="", client_secret="",
                           http=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))))
    with pytest.raises(UpstreamUnavailable):
        await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    await client.aclose()


@pytest.mark.parametrize("body", [{"error": "weird"}, ["not", "a", "dict"], {"access_token": ""}])
async def test_malformed_token_response(body):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json=body)

    client = make_client(handler)
    with pytest.raises(UpstreamUnavailable, match="malformed"):
        await client.search_flight_offers("LHR", "MAD", date(2025, 10, 15))
    assert calls == ["/v1/security/oauth2/token"]
    await client.aclose()
