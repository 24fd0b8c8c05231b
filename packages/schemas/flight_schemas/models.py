from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, conint, model_validator

IATA_PATTERN = r"^[A-Z]{3}$"


class SearchQuery(BaseModel):
    """Normalized, validated search query handed to the route optimizer."""
    model_config = ConfigDict(frozen=True)

    origin: str = Field(..., pattern=IATA_PATTERN)
    destination: str = Field(..., pattern=IATA_PATTERN)
    date: str = Field(..., description="YYYY-MM-DD")
    passengers: conint(ge=1, le=9) = 1


class Flight(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    origin: str
    destination: str
    date: str
    price: float = Field(..., ge=0)
    currency: str = "USD"
    airline: str
    duration: str
    stops: conint(ge=0) = 0
    route: List[str]
    booking_url: Optional[str] = Field(default=None, serialization_alias="bookingUrl")

    @model_validator(mode="after")
    def _route_matches_stops(self) -> "Flight":
        if len(self.route) != self.stops + 2:
            raise ValueError(
                f"route of {len(self.route)} airports does not match {self.stops} stops"
            )
        return self

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Airport(BaseModel):
    country_code: str = ""
    region_name: str = ""
    iata: str
    icao: str = ""
    airport_name: str = ""
    latitude: str = ""
    longitude: str = ""


class ErrorPayload(BaseModel):
    error: str
    message: str
    code: int
