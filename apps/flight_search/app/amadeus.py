"""Amadeus Self-Service client: OAuth2 token cache, offer search, offer normalization."""

from __future__ import annotations

import asyncio
import math
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx
from pydantic import ValidationError as SchemaError

from flight_schemas.models import Flight, SearchQuery
from shared.logging import get_logger

from .errors import AuthError, SearchError
from .hubs import CARRIER_NAMES

logger = get_logger(__name__)

TOKEN_PATH = "/v1/security/oauth2/token"
FLIGHT_OFFERS_PATH = "/v2/shopping/flight-offers"

# Refresh this long before the provider-declared expiry
TOKEN_SAFETY_MARGIN_S = 5 * 60
MAX_OFFERS = 250
DEFAULT_CURRENCY = "USD"

DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:\d+S)?$")


def format_duration(iso_duration: str) -> str:
    """Render an ISO-8601 duration like ``PT2H30M`` as ``2h 30m``.

    Zero components are omitted. Anything that does not parse is returned as-is.
    """
    if not isinstance(iso_duration, str):
        return iso_duration
    match = DURATION_RE.match(iso_duration)
    if not match:
        return iso_duration

    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    if minutes:
        return f"{minutes}m"
    return iso_duration


def _parse_price(raw: Any) -> Optional[float]:
    try:
        price = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def _iata(segment: Mapping[str, Any], end: str) -> Optional[str]:
    point = segment.get(end)
    return point.get("iataCode") if isinstance(point, dict) else None


class AmadeusClient:
    """Manages Amadeus API authentication and flight-offer requests.

    One instance is shared by every request of the process. The bearer token
    lives only here and is read through :meth:`get_access_token`.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        *,
        carriers: Mapping[str, str] = CARRIER_NAMES,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.carriers = carriers
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_http = http_client is None
        self._clock = clock

        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._refresh_lock = asyncio.Lock()

    # --- Authentication ---

    def _token_is_fresh(self) -> bool:
        return self._token is not None and self._clock() < self._token_expiry - TOKEN_SAFETY_MARGIN_S

    async def get_access_token(self) -> str:
        """Return a valid bearer token, refreshing it at most once under contention."""
        if self._token_is_fresh():
            return self._token

        async with self._refresh_lock:
            # another caller may have refreshed while we waited for the lock
            if self._token_is_fresh():
                return self._token

            token, expires_in = await self._request_token()
            self._token = token
            self._token_expiry = self._clock() + expires_in
            logger.info("amadeus_token_refreshed expires_in=%s", expires_in)
            return token

    async def _request_token(self) -> tuple[str, int]:
        try:
            resp = await self._http.post(
                f"{self.base_url}{TOKEN_PATH}",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.error("amadeus_token_request_failed err=%r", e)
            raise AuthError(f"failed to request token: {e!r}") from e

        if resp.status_code != 200:
            logger.error("amadeus_token_rejected status=%s", resp.status_code)
            raise AuthError(
                f"token request failed with status {resp.status_code}: {resp.text[:500]}",
                details={"upstream_status": resp.status_code},
            )

        try:
            data = resp.json()
            token = data["access_token"]
            expires_in = int(data["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(f"failed to decode token response: {e!r}") from e
        if not isinstance(token, str) or not token:
            raise AuthError("failed to decode token response: empty access_token")

        return token, expires_in

    async def health_check(self) -> None:
        """Raise AuthError unless a token can be obtained."""
        await self.get_access_token()

    # --- Flight Search ---

    async def search_flights(self, query: SearchQuery) -> Dict[str, Any]:
        """Search flight offers.

        GET /v2/shopping/flight-offers
        Returns the decoded provider body; raises SearchError on any upstream failure.
        """
        token = await self.get_access_token()
        params = {
            "originLocationCode": query.origin,
            "destinationLocationCode": query.destination,
            "departureDate": query.date,
            "adults": query.passengers,
            "max": MAX_OFFERS,
            "currencyCode": DEFAULT_CURRENCY,
        }

        try:
            resp = await self._http.get(
                f"{self.base_url}{FLIGHT_OFFERS_PATH}",
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise SearchError(f"failed to search flights: {e!r}") from e

        if resp.status_code != 200:
            self._log_upstream_errors(resp)
            raise SearchError(
                f"flight search failed with status {resp.status_code}: {resp.text[:1000]}",
                details={"upstream_status": resp.status_code},
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise SearchError(f"failed to decode flight response: {e}: {resp.text[:500]}") from e
        if not isinstance(data, dict) or not isinstance(data.get("data", []), list):
            raise SearchError(f"failed to decode flight response: {resp.text[:500]}")

        return data

    @staticmethod
    def _log_upstream_errors(resp: httpx.Response) -> None:
        try:
            errors = resp.json().get("errors", [])
        except (ValueError, AttributeError):
            logger.error("amadeus_error status=%s body=%s", resp.status_code, resp.text[:500])
            return
        for e in errors:
            logger.error(
                "amadeus_error status=%s code=%s title=%s detail=%s",
                resp.status_code, e.get("code"), e.get("title", ""), e.get("detail", ""),
            )

    # --- Normalization ---

    def convert_offers(self, response: Mapping[str, Any], query: SearchQuery) -> List[Flight]:
        """Map provider offers onto Flight records, dropping the ones that cannot be used."""
        flights = []
        for idx, offer in enumerate(response.get("data") or []):
            flight = self._convert_offer(offer, query, idx)
            if flight is not None:
                flights.append(flight)
        return flights

    def _convert_offer(self, offer: Any, query: SearchQuery, idx: int) -> Optional[Flight]:
        if not isinstance(offer, dict):
            return None
        itineraries = offer.get("itineraries")
        if not isinstance(itineraries, list) or not itineraries or not isinstance(itineraries[0], dict):
            return None

        itinerary = itineraries[0]
        segments = itinerary.get("segments")
        if not isinstance(segments, list) or not segments or not all(isinstance(s, dict) for s in segments):
            return None

        price_info = offer.get("price")
        price = _parse_price(price_info.get("total")) if isinstance(price_info, dict) else None
        if price is None:
            logger.debug("offer_dropped id=%s reason=bad_price", offer.get("id"))
            return None

        route = [_iata(segments[0], "departure")]
        route.extend(_iata(seg, "arrival") for seg in segments)
        carrier = segments[0].get("carrierCode")

        try:
            return Flight(
                id=str(offer.get("id") or f"offer-{idx}"),
                origin=query.origin,
                destination=query.destination,
                date=query.date,
                price=price,
                currency=price_info.get("currency") or DEFAULT_CURRENCY,
                airline=self.airline_name(carrier if isinstance(carrier, str) else ""),
                duration=format_duration(itinerary.get("duration", "")),
                stops=len(segments) - 1,
                route=route,
            )
        except SchemaError as e:
            logger.debug("offer_dropped id=%s reason=%s", offer.get("id"), e.errors()[0]["msg"])
            return None

    def airline_name(self, carrier_code: str) -> str:
        return self.carriers.get(carrier_code, carrier_code)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
