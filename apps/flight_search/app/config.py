from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://frontend:3000"


class ConfigError(RuntimeError):
    """Required configuration is missing or malformed."""


def _split_csv(value: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


def _number(env: Mapping[str, str], key: str, default: str, cast):
    raw = env.get(key) or default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    amadeus_api_key: str
    amadeus_api_secret: str
    amadeus_base_url: str = "https://test.api.amadeus.com"
    port: int = 8080
    environment: str = "development"
    allowed_origins: Tuple[str, ...] = field(default_factory=lambda: _split_csv(DEFAULT_ALLOWED_ORIGINS))
    airports_csv: str = "airports.csv"
    search_timeout_s: float = 60.0
    provider_timeout_s: float = 30.0
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_per_minute: int = 60

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        missing = [k for k in ("AMADEUS_API_KEY", "AMADEUS_API_SECRET") if not env.get(k)]
        if missing:
            raise ConfigError(f"missing required configuration: {', '.join(missing)}")

        return cls(
            amadeus_api_key=env["AMADEUS_API_KEY"],
            amadeus_api_secret=env["AMADEUS_API_SECRET"],
            amadeus_base_url=env.get("AMADEUS_BASE_URL") or "https://test.api.amadeus.com",
            port=_number(env, "PORT", "8080", int),
            environment=env.get("ENVIRONMENT") or "development",
            allowed_origins=_split_csv(env.get("ALLOWED_ORIGINS") or DEFAULT_ALLOWED_ORIGINS),
            airports_csv=env.get("AIRPORTS_CSV") or "airports.csv",
            search_timeout_s=_number(env, "SEARCH_TIMEOUT_S", "60", float),
            provider_timeout_s=_number(env, "PROVIDER_TIMEOUT_S", "30", float),
            redis_url=env.get("REDIS_URL") or "redis://localhost:6379/0",
            rate_limit_per_minute=_number(env, "RATE_LIMIT_PER_MINUTE", "60", int),
        )


# Read at import time: logging and CORS are set up before Settings exist
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
ALLOWED_ORIGINS = _split_csv(os.getenv("ALLOWED_ORIGINS") or DEFAULT_ALLOWED_ORIGINS)
