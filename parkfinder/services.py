from __future__ import annotations

import random
from typing import Sequence

from parkfinder.geo import distance
from parkfinder.models import (
    Availability,
    DerivedLotView,
    EnvironmentAdvice,
    HourCount,
    OccupancyStat,
    ParkingLot,
    ParkingStats,
    Place,
    ResultSnapshot,
    ResultView,
    TravelOption,
)

CAR_CO2_KG_PER_KM = 0.2
WALK_MAX_KM = 1.2
CYCLE_MAX_KM = 5.0
LOW_AVAILABILITY_RATIO = 0.2

MOCK_HOURS = ["08:00", "09:00", "10:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00", "17:00"]


def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def occupancy_pct(capacity: int, available: int) -> int:
    return round((capacity - available) / max(1, capacity) * 100)


def availability_class(lot: ParkingLot) -> Availability:
    free = lot.available_spots
    if free <= 0:
        return "full"
    if free / max(1, lot.capacity) <= LOW_AVAILABILITY_RATIO:
        return "low"
    return "available"


def co2_estimate_kg(km: float) -> float:
    return km * CAR_CO2_KG_PER_KM


def recommend_alternatives(nearest_km: float | None, place_name: str = "your destination") -> EnvironmentAdvice:
    """Greener ways to reach the destination, keyed on the nearest lot's distance.

    ``nearest_km`` is None when no lots were found at all.
    """
    if nearest_km is None:
        return EnvironmentAdvice(
            intro=(
                f"No car parks found near {place_name}. "
                "Consider public transport, cycling, or walking if suitable."
            ),
            options=[
                TravelOption(
                    title="Public transport",
                    text="Use tram/train/bus to avoid parking and reduce congestion.",
                    impact="High",
                )
            ],
        )

    co2 = co2_estimate_kg(nearest_km)
    intro = (
        f"Approx. distance to the nearest car park: {nearest_km:.2f} km. "
        f"Estimated car CO₂ emissions: ~{co2:.2f} kg. Alternatives below:"
    )

    if nearest_km <= WALK_MAX_KM:
        options = [
            TravelOption(title="Walk", text="Distance is short. Walking avoids emissions and parking fees.", impact="~100% CO₂ saved"),
            TravelOption(title="Cycle", text="Fast and zero-emission for short trips.", impact="~100% CO₂ saved"),
            TravelOption(title="Public transport", text="If a direct service exists, it's cheaper than parking.", impact="High"),
        ]
    elif nearest_km <= CYCLE_MAX_KM:
        options = [
            TravelOption(title="Cycle", text="5 km is comfortable bike range for many riders.", impact="~100% CO₂ saved"),
            TravelOption(title="Public transport", text="Likely options available depending on route.", impact="High"),
            TravelOption(title="Park & Walk", text="Park slightly further away and walk the last 500-800 m.", impact="Some savings"),
        ]
    else:
        options = [
            TravelOption(title="Public transport", text="Avoid city traffic and parking costs.", impact="High"),
            TravelOption(title="Park & Ride", text="Drive to a suburban station, then train/tram to destination.", impact="Moderate savings"),
            TravelOption(title="Car share", text="Use shared vehicles to reduce total cars parked.", impact="Varies"),
        ]

    return EnvironmentAdvice(intro=intro, options=options, nearest_km=nearest_km, co2_kg=co2)


def derive_lots(destination: Place, lots: Sequence[ParkingLot]) -> list[DerivedLotView]:
    return [
        DerivedLotView(
            **lot.model_dump(),
            distance_m=distance(destination, lot),
            occupancy_pct=occupancy_pct(lot.capacity, lot.available_spots),
            availability=availability_class(lot),
        )
        for lot in lots
    ]


def status_message(place: Place, count: int) -> str:
    if count == 0:
        return "No car parks found in this area."
    return f"Showing {count} car parks near {place.name}."


def build_view(snapshot: ResultSnapshot) -> ResultView:
    lots = derive_lots(snapshot.destination, snapshot.lots)
    nearest_km = min(l.distance_m for l in lots) / 1000.0 if lots else None
    return ResultView(
        destination=snapshot.destination,
        lots=lots,
        status=status_message(snapshot.destination, len(lots)),
        advice=recommend_alternatives(nearest_km, snapshot.destination.name),
        fetched_at=snapshot.fetched_at,
    )


def occupancy_series(lots: Sequence[ParkingLot]) -> list[OccupancyStat]:
    return [
        OccupancyStat(car_park=lot.name, percentage=occupancy_pct(lot.capacity, lot.available_spots))
        for lot in lots
    ]


def mock_busiest_hours(rng: random.Random | None = None) -> list[HourCount]:
    rng = rng or random.Random()
    return [HourCount(hour=h, count=rng.randrange(100)) for h in MOCK_HOURS]


def local_stats(lots: Sequence[ParkingLot], rng: random.Random | None = None) -> ParkingStats:
    """Chart data computed from the lots on screen, with placeholder hour counts."""
    return ParkingStats(average_occupancy=occupancy_series(lots), busiest_hours=mock_busiest_hours(rng))
