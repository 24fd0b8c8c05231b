from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

ONE_STOP_CANDIDATE_LIMIT = 20
TWO_STOP_CANDIDATE_LIMIT = 10

# Region -> hub airports, in priority order
REGIONAL_HUBS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "north_america": (
        "JFK", "LAX", "ORD", "DFW", "ATL", "DEN", "SFO", "LAS", "SEA", "MIA",
        "BOS", "IAH", "PHX", "CLT", "MCO", "MSP", "DTW", "PHL", "LGA", "BWI",
    ),
    "europe": (
        "LHR", "CDG", "FRA", "AMS", "MAD", "FCO", "MUC", "ZUR", "VIE", "CPH",
        "ARN", "HEL", "OSL", "LIS", "ATH", "IST", "SVO", "WAW", "PRG", "BUD",
    ),
    "asia_pacific": (
        "NRT", "ICN", "PVG", "PEK", "HKG", "SIN", "BKK", "KUL", "CGK", "MNL",
        "TPE", "CAN", "DEL", "BOM", "SYD", "MEL", "DXB", "DOH", "KWI", "CAI",
    ),
    "middle_east_africa": (
        "DXB", "DOH", "AUH", "KWI", "CAI", "JNB", "CPT", "NBO", "ADD", "DAR",
        "LOS", "ACC", "CAS", "TUN", "ALG", "RUH", "JED", "AMM", "BEY", "BAH",
    ),
    "south_america": (
        "GRU", "EZE", "SCL", "BOG", "LIM", "CWB", "FOR", "GIG", "BSB", "MAO",
        "UIO", "MVD", "ASU", "CCS", "GEO", "PBM", "BEL", "STM", "CGB", "THE",
    ),
})

MAJOR_HUBS: Tuple[str, ...] = (
    "DXB", "DOH", "IST", "FRA", "LHR", "CDG", "AMS",
    "SIN", "HKG", "ICN", "NRT", "PVG",
    "JFK", "LAX", "ORD", "DFW", "ATL",
)

CARRIER_NAMES: Mapping[str, str] = MappingProxyType({
    "AA": "American Airlines",
    "UA": "United Airlines",
    "DL": "Delta Air Lines",
    "WN": "Southwest Airlines",
    "AS": "Alaska Airlines",
    "B6": "JetBlue Airways",
    "NK": "Spirit Airlines",
    "F9": "Frontier Airlines",
    "TG": "Thai Airways",
    "SQ": "Singapore Airlines",
    "CX": "Cathay Pacific",
    "EK": "Emirates",
    "QR": "Qatar Airways",
    "LH": "Lufthansa",
    "AF": "Air France",
    "KL": "KLM",
    "BA": "British Airways",
})


@dataclass(frozen=True)
class HubRegistry:
    """Read-only hub tables, built once at startup and shared by reference."""

    regions: Mapping[str, Tuple[str, ...]]
    major: Tuple[str, ...]

    @classmethod
    def default(cls) -> "HubRegistry":
        return cls(regions=REGIONAL_HUBS, major=MAJOR_HUBS)

    def one_stop_candidates(self) -> Tuple[str, ...]:
        hubs = [code for region in self.regions.values() for code in region]
        return tuple(hubs[:ONE_STOP_CANDIDATE_LIMIT])

    def two_stop_candidates(self) -> Tuple[str, ...]:
        return self.major[:TWO_STOP_CANDIDATE_LIMIT]
