from __future__ import annotations

import asyncio
import os
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from flight_schemas.api_schemas import (
    AirportsResponse, Liveness, ProviderHealth, Readiness,
    SearchRequest, ServiceHealth, ServiceInfo,
)
from shared.limits import RedisRateLimiter
from shared.logging import configure_logging, get_logger
from shared.redis_client import RedisClient

from .airports import AirportRegistry
from .amadeus import AmadeusClient
from .config import ALLOWED_ORIGINS, LOG_LEVEL, Settings
from .errors import AuthError, BadRequestError, FlightServiceError, RateLimitedError
from .hubs import HubRegistry
from .route_optimizer import RouteOptimizer
from .search_handler import SearchHandler

VERSION = "2.0.0"
SERVICE = "flight-search"
AIRPORTS_PAGE_SIZE = 50

configure_logging(LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="Flight Search Service", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(ALLOWED_ORIGINS),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
    max_age=300,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def install(
    target: FastAPI,
    settings: Settings,
    *,
    provider: Optional[AmadeusClient] = None,
    rate_limiter: Optional[RedisRateLimiter] = None,
    redis_client: Optional[RedisClient] = None,
) -> None:
    """Build the service graph and attach it to ``target.state``."""
    provider = provider or AmadeusClient(
        settings.amadeus_api_key,
        settings.amadeus_api_secret,
        settings.amadeus_base_url,
        timeout_s=settings.provider_timeout_s,
    )
    airports = AirportRegistry.load(settings.airports_csv)
    optimizer = RouteOptimizer(provider, HubRegistry.default())

    target.state.settings = settings
    target.state.provider = provider
    target.state.airports = airports
    target.state.optimizer = optimizer
    target.state.search_handler = SearchHandler(
        optimizer, airports=airports, timeout_s=settings.search_timeout_s
    )
    target.state.rate_limiter = rate_limiter
    target.state.redis = redis_client
    target.state.started_at = time.time()
    target.state.ready = True


async def _probe_provider(provider: AmadeusClient) -> None:
    await asyncio.sleep(2)
    logger.info("testing amadeus connection")
    try:
        await provider.health_check()
    except AuthError as e:
        logger.warning("amadeus connection failed err=%s; searches may not work", e.message)
    else:
        logger.info("amadeus connection ok")


@app.on_event("startup")
async def startup() -> None:
    settings = Settings.from_env()
    logger.info("flight search starting version=%s environment=%s port=%s",
                VERSION, settings.environment, settings.port)

    redis_client = RedisClient.from_url(settings.redis_url)
    limiter = None
    if settings.rate_limit_per_minute > 0:
        if await redis_client.ping():
            limiter = RedisRateLimiter(redis_client.client(), per_minute=settings.rate_limit_per_minute)
        else:
            logger.warning("redis unavailable url=%s; rate limiting disabled", settings.redis_url)

    install(app, settings, rate_limiter=limiter, redis_client=redis_client)
    app.state.provider_probe = asyncio.create_task(_probe_provider(app.state.provider))


@app.on_event("shutdown")
async def shutdown() -> None:
    probe = getattr(app.state, "provider_probe", None)
    if probe is not None:
        probe.cancel()
    if getattr(app.state, "provider", None) is not None:
        await app.state.provider.aclose()
    if getattr(app.state, "redis", None) is not None:
        await app.state.redis.close()
    logger.info("flight search stopped")


@app.exception_handler(FlightServiceError)
async def _service_error(request: Request, exc: FlightServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload().model_dump())


@app.exception_handler(RequestValidationError)
async def _bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    detail = f"{field}: {first.get('msg', 'malformed')}" if field else first.get("msg", "malformed")
    return await _service_error(request, BadRequestError(f"Invalid request body: {detail}"))


def _client_key(req: Request) -> str:
    forwarded = req.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    client_host = req.client.host if req.client else "unknown"
    return f"ip:{client_host}"


@app.post("/search")
async def search(req: Request, body: SearchRequest) -> JSONResponse:
    limiter = app.state.rate_limiter
    if limiter is not None:
        try:
            rl = await limiter.check(_client_key(req), "search")
        except (RedisError, OSError) as e:
            # fail open
            logger.warning("rate_limit_unavailable err=%r; request allowed", e)
            rl = None
        if rl is not None and not rl.allowed:
            raise RateLimitedError(
                f"limit of {rl.limit} searches per minute reached; retry in {rl.reset_in_seconds}s"
            )

    response = await app.state.search_handler.search(body)
    return JSONResponse(content=response.to_payload())


@app.get("/airports", response_model=AirportsResponse)
async def airports(q: str = "") -> AirportsResponse:
    registry: AirportRegistry = app.state.airports
    found = registry.search(q) if q else registry.all(limit=AIRPORTS_PAGE_SIZE)
    return AirportsResponse(airports=found, total=len(found), query=q)


@app.get("/health", response_model=ServiceHealth)
async def health() -> ServiceHealth:
    redis_client = app.state.redis
    if redis_client is None:
        redis_status = "not configured"
    elif await redis_client.ping():
        redis_status = "ok"
    else:
        redis_status = "unavailable"

    return ServiceHealth(
        service=SERVICE,
        version=VERSION,
        timestamp=_now_iso(),
        uptime_seconds=round(time.time() - app.state.started_at, 3),
        dependencies={
            "redis": redis_status,
            "airports": "csv" if app.state.airports.from_file else "builtin",
        },
    )


@app.get("/health/ready")
async def readiness() -> JSONResponse:
    ready = bool(getattr(app.state, "ready", False))
    body = Readiness(ready=ready, service=SERVICE, timestamp=_now_iso())
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump())


@app.get("/health/live", response_model=Liveness)
async def liveness() -> Liveness:
    return Liveness(service=SERVICE, timestamp=_now_iso())


@app.get("/search/health", response_model=ProviderHealth)
async def provider_health() -> ProviderHealth:
    try:
        await app.state.provider.health_check()
        amadeus_status = "healthy"
    except AuthError as e:
        amadeus_status = f"unhealthy: {e.message}"

    return ProviderHealth(
        amadeus_service=amadeus_status,
        airports_loaded=len(app.state.airports),
        timestamp=_now_iso(),
    )


@app.get("/info", response_model=ServiceInfo)
async def info() -> ServiceInfo:
    settings: Settings = app.state.settings
    return ServiceInfo(
        service=SERVICE,
        version=VERSION,
        environment=settings.environment,
        endpoints={
            "health": "GET /health",
            "search": "POST /search",
            "airports": "GET /airports",
            "search_health": "GET /search/health",
        },
        estimated_search_seconds=app.state.optimizer.estimate_search_time().total_seconds(),
    )


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8080")))
