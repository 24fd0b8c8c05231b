import asyncio
import time
from datetime import timedelta

import httpx
import pytest

from app.amadeus import AmadeusClient
from app.validation import utc_today
from flight_schemas.models import SearchQuery

BASE_URL = "https://amadeus.example.test"


def make_segment(dep, arr, carrier="SQ"):
    return {
        "departure": {"iataCode": dep, "at": "2030-01-01T08:00:00"},
        "arrival": {"iataCode": arr, "at": "2030-01-01T10:30:00"},
        "carrierCode": carrier,
        "number": "711",
        "duration": "PT2H30M",
    }


def make_offer(offer_id, route, price="450.00", carrier="SQ", duration="PT2H30M", currency="USD"):
    segments = [make_segment(a, b, carrier) for a, b in zip(route, route[1:])]
    return {
        "type": "flight-offer",
        "id": offer_id,
        "itineraries": [{"duration": duration, "segments": segments}],
        "price": {"currency": currency, "total": price, "grandTotal": price},
    }


class FakeAmadeus:
    """Scriptable stand-in for the Amadeus HTTP API, served through httpx.MockTransport."""

    def __init__(self):
        self.offers = []
        self.token_status = 200
        self.token_body = None
        self.search_status = 200
        self.search_body = None
        self.expires_in = 1799
        self.token_delay = 0.0
        self.search_delay = 0.0
        self.token_calls = 0
        self.search_requests = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/security/oauth2/token":
            self.token_calls += 1
            if self.token_delay:
                await asyncio.sleep(self.token_delay)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            if self.token_body is not None:
                return httpx.Response(200, content=self.token_body)
            return httpx.Response(200, json={
                "type": "amadeusOAuth2Token",
                "access_token": f"tok-{self.token_calls}",
                "token_type": "Bearer",
                "expires_in": self.expires_in,
            })

        if request.url.path == "/v2/shopping/flight-offers":
            self.search_requests.append(request)
            if self.search_delay:
                await asyncio.sleep(self.search_delay)
            if self.search_status != 200:
                return httpx.Response(self.search_status, text="upstream exploded")
            if self.search_body is not None:
                return httpx.Response(200, content=self.search_body)
            return httpx.Response(200, json={"meta": {"count": len(self.offers)}, "data": self.offers})

        return httpx.Response(404)

    def client(self, clock=time.time) -> AmadeusClient:
        return AmadeusClient(
            "client-id",
            "client-secret",
            BASE_URL,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
            clock=clock,
        )


class FakeRedis:
    def __init__(self):
        self.counters = {}
        self.expiries = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True


@pytest.fixture
def fake_amadeus():
    return FakeAmadeus()


@pytest.fixture
def tomorrow():
    return (utc_today() + timedelta(days=1)).isoformat()


@pytest.fixture
def query(tomorrow):
    return SearchQuery(origin="BKK", destination="SIN", date=tomorrow, passengers=1)
