from __future__ import annotations
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from .models import Airport, Flight, SearchQuery


# Inbound body is intentionally unconstrained: range and format checks belong
# to the handler so every violation can be reported with the same payload.
class SearchRequest(BaseModel):
    origin: str
    destination: str
    date: str
    passengers: int


class SearchResponse(BaseModel):
    flights: List[Flight]
    message: Optional[str] = None
    total: int
    query: SearchQuery

    def to_payload(self) -> dict:
        return {
            "flights": [f.to_payload() for f in self.flights],
            "message": self.message,
            "total": self.total,
            "query": self.query.model_dump(),
        }


class AirportsResponse(BaseModel):
    airports: List[Airport]
    total: int
    query: str = ""


class ServiceHealth(BaseModel):
    status: str = "healthy"
    service: str
    version: str
    timestamp: str
    uptime_seconds: float
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ProviderHealth(BaseModel):
    status: str = "healthy"
    service: str = "flight-search"
    amadeus_service: str
    airports_loaded: int
    timestamp: str


class Readiness(BaseModel):
    ready: bool
    service: str
    timestamp: str


class Liveness(BaseModel):
    alive: bool = True
    service: str
    timestamp: str


class ServiceInfo(BaseModel):
    service: str
    version: str
    environment: str
    endpoints: Dict[str, str]
    estimated_search_seconds: float
