import asyncio
import json

import pytest

from app.amadeus import format_duration
from app.errors import AuthError, SearchError
from conftest import make_offer


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("PT2H30M", "2h 30m"),
        ("PT45M", "45m"),
        ("PT3H", "3h"),
        ("PT0H0M", "PT0H0M"),
        ("2 hours", "2 hours"),
        ("PTxH", "PTxH"),
        ("PT2HxxM", "PT2HxxM"),
        ("PT1H5M30S", "1h 5m"),
        ("", ""),
    ],
)
def test_format_duration(raw, expected):
    assert format_duration(raw) == expected


def test_convert_offers_builds_route_and_stops(fake_amadeus, query):
    client = fake_amadeus.client()
    response = {"data": [make_offer("1", ["BKK", "KUL", "SIN"], price="321.40", carrier="TG")]}

    flights = client.convert_offers(response, query)

    assert len(flights) == 1
    flight = flights[0]
    assert flight.route == ["BKK", "KUL", "SIN"]
    assert flight.stops == 1
    assert flight.price == pytest.approx(321.40)
    assert flight.airline == "Thai Airways"
    assert flight.duration == "2h 30m"
    assert flight.origin == "BKK" and flight.destination == "SIN"
    assert flight.date == query.date


def test_convert_offers_drops_unparseable_price_only(fake_amadeus, query):
    client = fake_amadeus.client()
    response = {"data": [
        make_offer("1", ["BKK", "SIN"], price="450.00"),
        make_offer("2", ["BKK", "SIN"], price="four hundred"),
        make_offer("3", ["BKK", "SIN"], price="199.99"),
    ]}

    flights = client.convert_offers(response, query)

    assert [f.id for f in flights] == ["1", "3"]


def test_convert_offers_drops_offers_without_segments(fake_amadeus, query):
    client = fake_amadeus.client()
    empty_segments = make_offer("2", ["BKK", "SIN"])
    empty_segments["itineraries"][0]["segments"] = []
    response = {"data": [
        {"id": "1", "itineraries": [], "price": {"total": "100", "currency": "USD"}},
        empty_segments,
        make_offer("3", ["BKK", "SIN"]),
    ]}

    flights = client.convert_offers(response, query)

    assert [f.id for f in flights] == ["3"]


def test_convert_offers_drops_malformed_shapes_only(fake_amadeus, query):
    client = fake_amadeus.client()
    bare_price = make_offer("2", ["BKK", "SIN"])
    bare_price["price"] = "450.00"
    string_segment = make_offer("3", ["BKK", "SIN"])
    string_segment["itineraries"][0]["segments"] = ["BKK-SIN"]
    itinerary_map = make_offer("4", ["BKK", "SIN"])
    itinerary_map["itineraries"] = {"duration": "PT2H"}
    string_arrival = make_offer("5", ["BKK", "SIN"])
    string_arrival["itineraries"][0]["segments"][0]["arrival"] = "SIN"
    response = {"data": [make_offer("1", ["BKK", "SIN"]), bare_price, string_segment, itinerary_map, string_arrival]}

    flights = client.convert_offers(response, query)

    assert [f.id for f in flights] == ["1"]


def test_unknown_carrier_passes_through(fake_amadeus, query):
    client = fake_amadeus.client()
    flights = client.convert_offers({"data": [make_offer("1", ["BKK", "SIN"], carrier="ZZ")]}, query)
    assert flights[0].airline == "ZZ"


def test_token_is_cached_within_validity_window(fake_amadeus):
    now = [1000.0]
    client = fake_amadeus.client(clock=lambda: now[0])

    async def scenario():
        first = await client.get_access_token()
        now[0] += 600
        second = await client.get_access_token()
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second == "tok-1"
    assert fake_amadeus.token_calls == 1


def test_token_refreshes_inside_safety_margin(fake_amadeus):
    now = [1000.0]
    client = fake_amadeus.client(clock=lambda: now[0])

    async def scenario():
        await client.get_access_token()
        # 1799s lifetime, refreshed once fewer than 300s remain
        now[0] += 1799 - 299
        return await client.get_access_token()

    assert asyncio.run(scenario()) == "tok-2"
    assert fake_amadeus.token_calls == 2


def test_concurrent_callers_trigger_single_refresh(fake_amadeus):
    fake_amadeus.token_delay = 0.05
    client = fake_amadeus.client()

    async def scenario():
        return await asyncio.gather(*(client.get_access_token() for _ in range(10)))

    tokens = asyncio.run(scenario())

    assert set(tokens) == {"tok-1"}
    assert fake_amadeus.token_calls == 1


def test_token_request_rejected_raises_auth_error(fake_amadeus):
    fake_amadeus.token_status = 401
    client = fake_amadeus.client()

    with pytest.raises(AuthError) as exc:
        asyncio.run(client.get_access_token())
    assert "401" in exc.value.message


def test_unparseable_token_body_raises_auth_error(fake_amadeus):
    fake_amadeus.token_body = b"<html>maintenance</html>"
    client = fake_amadeus.client()

    with pytest.raises(AuthError):
        asyncio.run(client.get_access_token())


def test_health_check_follows_token_availability(fake_amadeus):
    client = fake_amadeus.client()
    asyncio.run(client.health_check())

    fake_amadeus.token_status = 500
    broken = fake_amadeus.client()
    with pytest.raises(AuthError):
        asyncio.run(broken.health_check())


def test_search_flights_sends_query_parameters(fake_amadeus, query):
    fake_amadeus.offers = [make_offer("1", ["BKK", "SIN"])]
    client = fake_amadeus.client()

    body = asyncio.run(client.search_flights(query))

    assert len(body["data"]) == 1
    request = fake_amadeus.search_requests[0]
    params = request.url.params
    assert params["originLocationCode"] == "BKK"
    assert params["destinationLocationCode"] == "SIN"
    assert params["departureDate"] == query.date
    assert params["adults"] == "1"
    assert params["max"] == "250"
    assert params["currencyCode"] == "USD"
    assert request.headers["Authorization"] == "Bearer tok-1"


def test_search_error_carries_upstream_body(fake_amadeus, query):
    fake_amadeus.search_status = 500
    client = fake_amadeus.client()

    with pytest.raises(SearchError) as exc:
        asyncio.run(client.search_flights(query))

    assert "500" in exc.value.message
    assert "upstream exploded" in exc.value.message
    assert exc.value.details["upstream_status"] == 500


def test_malformed_search_body_raises_search_error(fake_amadeus, query):
    fake_amadeus.search_body = json.dumps({"data": "not-a-list"}).encode()
    client = fake_amadeus.client()

    with pytest.raises(SearchError):
        asyncio.run(client.search_flights(query))
