from __future__ import annotations

from typing import Optional

from flight_schemas.models import ErrorPayload


class FlightServiceError(Exception):
    """Base for errors rendered as an ErrorPayload at the HTTP boundary."""

    status_code = 500
    label = "Internal Server Error"

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(error=self.label, message=self.message, code=self.status_code)


class ValidationError(FlightServiceError):
    status_code = 400
    label = "Validation failed"


class BadRequestError(FlightServiceError):
    status_code = 400
    label = "Bad Request"


class AuthError(FlightServiceError):
    status_code = 502
    label = "Provider authentication failed"


class SearchError(FlightServiceError):
    status_code = 502
    label = "Provider search failed"


class SearchFailedError(FlightServiceError):
    status_code = 500
    label = "Internal Server Error"


class RateLimitedError(FlightServiceError):
    status_code = 429
    label = "Too Many Requests"


class SearchCancelled(Exception):
    """The search deadline had already expired before the optimizer started."""
