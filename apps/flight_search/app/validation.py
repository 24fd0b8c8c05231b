from __future__ import annotations

from datetime import date, datetime, timezone
from typing import AbstractSet, List, Optional, Tuple

from flight_schemas.api_schemas import SearchRequest
from flight_schemas.models import SearchQuery

DATE_FORMAT = "%Y-%m-%d"
MIN_PASSENGERS = 1
MAX_PASSENGERS = 9


def normalize_airport_code(code: str) -> str:
    return (code or "").strip().upper()


def is_airport_code(code: str) -> bool:
    return len(code) == 3 and code.isascii() and code.isalpha()


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def validate_date(value: str, today: Optional[date] = None) -> Optional[str]:
    """Return an error message, or None when ``value`` is a non-past YYYY-MM-DD date."""
    try:
        # strptime alone would accept unpadded fields like 2026-1-5
        if len(value) != 10:
            raise ValueError(value)
        parsed = datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        return "date must be in YYYY-MM-DD format and not in the past"
    if parsed < (today or utc_today()):
        return "date must be in YYYY-MM-DD format and not in the past"
    return None


def is_passenger_count(count) -> bool:
    if isinstance(count, bool) or not isinstance(count, int):
        return False
    return MIN_PASSENGERS <= count <= MAX_PASSENGERS


def validate_search_request(
    req: SearchRequest,
    known_codes: Optional[AbstractSet[str]] = None,
    today: Optional[date] = None,
) -> Tuple[Optional[SearchQuery], List[str]]:
    """
    Normalize and check an inbound search.
    Returns (query, []) on success, or (None, violations) in discovery order.
    """
    origin = normalize_airport_code(req.origin)
    destination = normalize_airport_code(req.destination)
    errors: List[str] = []

    for label, code in (("origin", origin), ("destination", destination)):
        if not is_airport_code(code):
            errors.append(f"{label} must be a valid 3-letter airport code")
        elif known_codes is not None and code not in known_codes:
            errors.append(f"invalid {label} airport code: {code}")

    if origin == destination:
        errors.append("origin and destination cannot be the same")

    date_error = validate_date(req.date, today)
    if date_error:
        errors.append(date_error)

    if not is_passenger_count(req.passengers):
        errors.append("passenger count must be between 1 and 9")

    if errors:
        return None, errors

    return SearchQuery(
        origin=origin,
        destination=destination,
        date=req.date,
        passengers=req.passengers,
    ), []
