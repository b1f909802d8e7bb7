from __future__ import annotations

import logging
from dataclasses import dataclass, field

from parkfinder.data_loader import load_store_from_file
from parkfinder.models import ParkingLot, Place

logger = logging.getLogger(__name__)

SEED_PLACES: list[dict] = [
    {"place_id": "g-fedsq", "name": "Federation Square", "lat": -37.817979, "lng": 144.969093},
    {"place_id": "g-caulfield", "name": "Monash Caulfield Campus", "lat": -37.8770, "lng": 145.0443},
    {"place_id": "g-swanston", "name": "Swanston St & Bourke St", "lat": -37.8134, "lng": 144.9635},
]

SEED_LOTS: list[dict] = [
    {"id": "CP-101", "name": "Flinders Lane Car Park", "lat": -37.8173, "lng": 144.9655, "capacity": 220, "available_spots": 88, "price": "$3/hr"},
    {"id": "CP-102", "name": "Russell St Car Park", "lat": -37.8128, "lng": 144.9675, "capacity": 160, "available_spots": 47, "price": "$4/hr"},
    {"id": "CP-103", "name": "QV Car Park", "lat": -37.8106, "lng": 144.9652, "capacity": 120, "available_spots": 12, "price": "$5/hr"},
    {"id": "CP-201", "name": "Derby Rd Car Park", "lat": -37.8779, "lng": 145.0449, "capacity": 180, "available_spots": 61, "price": "$3/hr"},
    {"id": "CP-202", "name": "Caulfield Plaza Car Park", "lat": -37.8765, "lng": 145.0431, "capacity": 140, "available_spots": 9, "price": "$3/hr"},
]


@dataclass
class FixtureStore:
    """Gazetteer and lot records owned by one in-memory data source."""

    places: list[Place] = field(default_factory=list)
    lots: list[ParkingLot] = field(default_factory=list)

    @classmethod
    def default(cls) -> FixtureStore:
        places = [
            Place(id=p["place_id"], name=p["name"], lat=p["lat"], lng=p["lng"])
            for p in SEED_PLACES
        ]
        lots = [ParkingLot(**row) for row in SEED_LOTS]
        return cls(places=places, lots=lots)

    @classmethod
    def from_file(cls, path: str) -> FixtureStore:
        result = load_store_from_file(path)
        # files that only carry lots still get the stock gazetteer
        places = result.places or cls.default().places
        logger.info("Loaded %d car parks and %d places from %s", len(result.lots), len(result.places), result.source)
        return cls(places=places, lots=result.lots)

    def find_lot(self, lot_id: str) -> int | None:
        for i, lot in enumerate(self.lots):
            if lot.id == lot_id:
                return i
        return None
