from __future__ import annotations

import random

from parkfinder.models import ParkingLot, Place, ResultSnapshot
from parkfinder.services import (
    availability_class,
    build_view,
    co2_estimate_kg,
    local_stats,
    occupancy_pct,
    recommend_alternatives,
)


def _lot(available: int, capacity: int = 100, **kw) -> ParkingLot:
    fields = {"id": "L1", "name": "Test Lot", "lat": -37.8173, "lng": 144.9655}
    fields.update(kw)
    return ParkingLot(capacity=capacity, available_spots=available, **fields)


def test_occupancy_pct() -> None:
    assert occupancy_pct(100, 25) == 75
    assert occupancy_pct(0, 0) == 0
    assert occupancy_pct(220, 88) == 60


def test_availability_class() -> None:
    assert availability_class(_lot(0)) == "full"
    assert availability_class(_lot(20)) == "low"
    assert availability_class(_lot(21)) == "available"


def test_recommendations_by_distance() -> None:
    def titles(km):
        return [o.title for o in recommend_alternatives(km).options]

    assert titles(0.3) == ["Walk", "Cycle", "Public transport"]
    assert titles(1.2) == ["Walk", "Cycle", "Public transport"]
    assert titles(3.0) == ["Cycle", "Public transport", "Park & Walk"]
    assert titles(5.0) == ["Cycle", "Public transport", "Park & Walk"]
    assert titles(7.5) == ["Public transport", "Park & Ride", "Car share"]


def test_recommendation_without_lots() -> None:
    advice = recommend_alternatives(None, "Nowhere")
    assert [o.title for o in advice.options] == ["Public transport"]
    assert "No car parks found near Nowhere" in advice.intro
    assert advice.co2_kg is None


def test_co2_estimate() -> None:
    assert abs(co2_estimate_kg(2.0) - 0.4) < 1e-9
    assert abs(recommend_alternatives(2.0).co2_kg - 0.4) < 1e-9


def test_build_view_derives_distance_and_status(fed_square: Place) -> None:
    snapshot = ResultSnapshot(destination=fed_square, lots=[_lot(88, capacity=220, price="$3/hr")])
    view = build_view(snapshot)

    assert view.status == "Showing 1 car parks near Federation Square."
    lot = view.lots[0]
    assert 250 < lot.distance_m < 400
    assert lot.occupancy_pct == 60
    assert lot.availability == "available"
    assert view.advice.options[0].title == "Walk"


def test_build_view_for_empty_snapshot(fed_square: Place) -> None:
    view = build_view(ResultSnapshot(destination=fed_square, lots=[]))
    assert view.lots == []
    assert view.status == "No car parks found in this area."
    assert [o.title for o in view.advice.options] == ["Public transport"]


def test_local_stats_uses_current_lots() -> None:
    stats = local_stats([_lot(25, name="A"), _lot(100, name="B")], random.Random(3))
    assert [(s.car_park, s.percentage) for s in stats.average_occupancy] == [("A", 75), ("B", 0)]
    assert [h.hour for h in stats.busiest_hours][0] == "08:00"
    assert len(stats.busiest_hours) == 10
    assert all(0 <= h.count < 100 for h in stats.busiest_hours)
