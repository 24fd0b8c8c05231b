from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional

from flight_schemas.models import Airport
from shared.logging import get_logger

logger = get_logger(__name__)

SEARCH_LIMIT = 20

CSV_COLUMNS = ("country_code", "region_name", "iata", "icao", "airport_name", "latitude", "longitude")

# used when no reference CSV is available
BUILTIN_AIRPORTS = [
    Airport(country_code="TH", region_name="Bangkok", iata="BKK", icao="VTBS",
            airport_name="Bangkok - Suvarnabhumi", latitude="13.6900", longitude="100.7501"),
    Airport(country_code="TH", region_name="Bangkok", iata="DMK", icao="VTBD",
            airport_name="Bangkok - Don Mueang", latitude="13.9126", longitude="100.6067"),
    Airport(country_code="SG", region_name="Singapore", iata="SIN", icao="WSSS",
            airport_name="Singapore - Changi", latitude="1.3644", longitude="103.9915"),
    Airport(country_code="DE", region_name="Frankfurt", iata="FRA", icao="EDDF",
            airport_name="Frankfurt", latitude="50.0264", longitude="8.5431"),
    Airport(country_code="GB", region_name="London", iata="LHR", icao="EGLL",
            airport_name="London - Heathrow", latitude="51.4700", longitude="-0.4543"),
    Airport(country_code="US", region_name="New York", iata="JFK", icao="KJFK",
            airport_name="John F. Kennedy International Airport", latitude="40.6413", longitude="-73.7781"),
    Airport(country_code="US", region_name="Los Angeles", iata="LAX", icao="KLAX",
            airport_name="Los Angeles International Airport", latitude="33.9425", longitude="-118.4081"),
]


class AirportRegistry:
    """IATA code -> Airport, loaded once at startup and read-only afterwards."""

    def __init__(self, airports: Iterable[Airport], from_file: bool = False):
        self._airports: Dict[str, Airport] = {}
        for airport in airports:
            code = airport.iata.strip().upper()
            self._airports[code] = airport.model_copy(update={"iata": code})
        self.from_file = from_file

    @classmethod
    def load(cls, path: Optional[str]) -> "AirportRegistry":
        if path:
            try:
                airports = read_airports_csv(Path(path))
            except (OSError, csv.Error) as e:
                logger.warning("airports_csv_unavailable path=%s err=%r; using builtin list", path, e)
            else:
                logger.info("airports_loaded source=%s count=%s", path, len(airports))
                return cls(airports, from_file=True)
        return cls(BUILTIN_AIRPORTS, from_file=False)

    def __len__(self) -> int:
        return len(self._airports)

    def codes(self) -> FrozenSet[str]:
        return frozenset(self._airports)

    def get(self, code: str) -> Optional[Airport]:
        return self._airports.get((code or "").strip().upper())

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> List[Airport]:
        q = query.strip().lower()
        results = []
        for airport in self._airports.values():
            if (q in airport.iata.lower()
                    or q in airport.airport_name.lower()
                    or q in airport.region_name.lower()):
                results.append(airport)
                if len(results) >= limit:
                    break
        return results

    def all(self, limit: Optional[int] = None) -> List[Airport]:
        airports = list(self._airports.values())
        return airports if limit is None else airports[:limit]


def read_airports_csv(path: Path) -> List[Airport]:
    """Parse a reference CSV with a header row; rows without an IATA code are skipped."""
    airports = []
    with path.open(newline="", encoding="utf-8") as fh:
        reader = csv.reader(fh)
        next(reader, None)
        for row in reader:
            if len(row) < len(CSV_COLUMNS) or not row[2].strip():
                continue
            airports.append(Airport(**dict(zip(CSV_COLUMNS, (cell.strip() for cell in row)))))
    return airports
