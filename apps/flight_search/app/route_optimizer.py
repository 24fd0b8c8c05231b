from __future__ import annotations

import asyncio
import math
import time
from datetime import timedelta
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from flight_schemas.models import Flight, SearchQuery
from shared.logging import get_logger

from .amadeus import AmadeusClient
from .errors import SearchCancelled
from .hubs import HubRegistry

logger = get_logger(__name__)

MAX_RESULTS = 10
ONE_STOP_CONCURRENCY = 5
TWO_STOP_CONCURRENCY = 3
PRICE_BUCKET = 10

PHASES = ("direct", "one_stop", "two_stop")


def dedupe_key(flight: Flight) -> Tuple[Tuple[str, ...], int]:
    """Same route and same 10-dollar price bucket count as one option."""
    return tuple(flight.route), int(math.floor(flight.price / PRICE_BUCKET) * PRICE_BUCKET)


def remove_duplicate_flights(flights: Iterable[Flight]) -> List[Flight]:
    seen = set()
    unique = []
    for flight in flights:
        key = dedupe_key(flight)
        if key in seen:
            continue
        seen.add(key)
        unique.append(flight)
    return unique


class RouteOptimizer:
    """
    Fans one query out into direct, one-stop and two-stop searches and
    returns the cheapest distinct options.

    Direct flights come from the provider. One- and two-stop options are
    synthesized per hub with placeholder pricing.
    """

    def __init__(
        self,
        provider: AmadeusClient,
        hubs: HubRegistry,
        *,
        max_results: int = MAX_RESULTS,
        one_stop_concurrency: int = ONE_STOP_CONCURRENCY,
        two_stop_concurrency: int = TWO_STOP_CONCURRENCY,
    ):
        self.provider = provider
        self.hubs = hubs
        self.max_results = max_results
        self.one_stop_concurrency = one_stop_concurrency
        self.two_stop_concurrency = two_stop_concurrency

    async def optimize_routes(self, query: SearchQuery, deadline: Optional[float] = None) -> List[Flight]:
        """Run all phases concurrently; ``deadline`` is an absolute event-loop time."""
        loop = asyncio.get_running_loop()
        if deadline is not None and loop.time() >= deadline:
            raise SearchCancelled(f"search deadline expired before {query.origin}->{query.destination} started")

        started = time.perf_counter()
        results = await asyncio.gather(
            self.search_direct_flights(query, deadline),
            self.search_one_stop_routes(query, deadline),
            self.search_two_stop_routes(query, deadline),
            return_exceptions=True,
        )

        all_flights: List[Flight] = []
        for phase, result in zip(PHASES, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "search_phase_failed phase=%s origin=%s destination=%s err=%r",
                    phase, query.origin, query.destination, result,
                )
                continue
            logger.debug("search_phase_done phase=%s flights=%s", phase, len(result))
            all_flights.extend(result)

        best = self.select_best_flights(all_flights)
        logger.info(
            "optimize_routes origin=%s destination=%s candidates=%s returned=%s latency_ms=%s",
            query.origin, query.destination, len(all_flights), len(best),
            int((time.perf_counter() - started) * 1000),
        )
        return best

    # --- Phases ---

    async def search_direct_flights(self, query: SearchQuery, deadline: Optional[float] = None) -> List[Flight]:
        response = await self._within_deadline(self.provider.search_flights(query), deadline)
        flights = self.provider.convert_offers(response, query)
        return [f for f in flights if f.stops == 0]

    async def search_one_stop_routes(self, query: SearchQuery, deadline: Optional[float] = None) -> List[Flight]:
        gate = asyncio.Semaphore(self.one_stop_concurrency)
        hubs = [h for h in self.hubs.one_stop_candidates() if h not in (query.origin, query.destination)]

        batches = await asyncio.gather(*(
            self._gated(gate, deadline, self.search_via_hub, query, hub) for hub in hubs
        ))
        return [f for batch in batches for f in batch]

    async def search_two_stop_routes(self, query: SearchQuery, deadline: Optional[float] = None) -> List[Flight]:
        gate = asyncio.Semaphore(self.two_stop_concurrency)
        hubs = self.hubs.two_stop_candidates()
        excluded = (query.origin, query.destination)

        pairs = [
            (hub1, hub2)
            for i, hub1 in enumerate(hubs)
            for hub2 in hubs[i + 1:]
            if hub1 != hub2 and hub1 not in excluded and hub2 not in excluded
        ]
        batches = await asyncio.gather(*(
            self._gated(gate, deadline, self.search_via_two_hubs, query, hub1, hub2) for hub1, hub2 in pairs
        ))
        return [f for batch in batches for f in batch]

    # --- Synthetic legs ---

    async def search_via_hub(self, query: SearchQuery, hub: str) -> List[Flight]:
        # TODO: price origin->hub and hub->destination as real legs and check the layover
        return [Flight(
            id=f"multi-{query.origin}-{hub}-{query.destination}",
            origin=query.origin,
            destination=query.destination,
            date=query.date,
            price=350.0 + len(hub) * 10,
            currency="USD",
            airline="Multi-Airline",
            duration="8h 30m",
            stops=1,
            route=[query.origin, hub, query.destination],
        )]

    async def search_via_two_hubs(self, query: SearchQuery, hub1: str, hub2: str) -> List[Flight]:
        return [Flight(
            id=f"multi2-{query.origin}-{hub1}-{hub2}-{query.destination}",
            origin=query.origin,
            destination=query.destination,
            date=query.date,
            price=250.0 + (len(hub1) + len(hub2)) * 5,
            currency="USD",
            airline="Multi-Airline Express",
            duration="12h 45m",
            stops=2,
            route=[query.origin, hub1, hub2, query.destination],
        )]

    # --- Selection ---

    def select_best_flights(self, flights: List[Flight]) -> List[Flight]:
        """Cheapest first, one option per (route, price bucket), at most max_results."""
        ordered = sorted(flights, key=lambda f: f.price)
        return remove_duplicate_flights(ordered)[: self.max_results]

    def estimate_search_time(self, query: Optional[SearchQuery] = None) -> timedelta:
        # direct + one-stop + two-stop; informational only
        return timedelta(seconds=5) + timedelta(seconds=15) + timedelta(seconds=20)

    # --- Concurrency helpers ---

    @staticmethod
    def _remaining(deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return deadline - asyncio.get_running_loop().time()

    async def _within_deadline(self, aw: Awaitable, deadline: Optional[float]):
        remaining = self._remaining(deadline)
        if remaining is None:
            return await aw
        if remaining <= 0:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise asyncio.TimeoutError("search deadline expired")
        return await asyncio.wait_for(aw, remaining)

    async def _gated(
        self,
        gate: asyncio.Semaphore,
        deadline: Optional[float],
        search: Callable[..., Awaitable[List[Flight]]],
        *args,
    ) -> List[Flight]:
        """Run ``search`` under ``gate``; give up quietly if the deadline passes first."""
        remaining = self._remaining(deadline)
        if remaining is None:
            await gate.acquire()
        else:
            if remaining <= 0:
                return []
            try:
                await asyncio.wait_for(gate.acquire(), remaining)
            except asyncio.TimeoutError:
                return []
        try:
            return await search(*args)
        finally:
            gate.release()
