from __future__ import annotations

import asyncio
import random

from parkfinder.config import Settings
from parkfinder.fixtures import FixtureStore
from parkfinder.models import ParkingLot, Place
from parkfinder.sources import InMemoryDataSource, RemoteDataSource, build_data_source


def _source(seed: int = 7) -> InMemoryDataSource:
    return InMemoryDataSource(FixtureStore.default(), rng=random.Random(seed))


def test_geo_search_federation_square() -> None:
    places = asyncio.run(_source().geo_search("federation square"))
    assert len(places) == 1
    assert places[0].name == "Federation Square"
    assert (places[0].lat, places[0].lng) == (-37.817979, 144.969093)


def test_geo_search_is_capped_at_eight() -> None:
    store = FixtureStore(places=[Place(name=f"Station {i}", lat=0.0, lng=float(i)) for i in range(12)])
    places = asyncio.run(InMemoryDataSource(store).geo_search("station"))
    assert [p.name for p in places] == [f"Station {i}" for i in range(8)]


def test_geo_search_no_match() -> None:
    assert asyncio.run(_source().geo_search("atlantis")) == []


def test_parking_near_federation_square(fed_square: Place) -> None:
    lots = asyncio.run(_source().parking_near(fed_square, 900))
    assert {lot.id for lot in lots} == {"CP-101", "CP-102", "CP-103"}


def test_parking_near_falls_back_to_three_nearest(fed_square: Place) -> None:
    lots = asyncio.run(_source().parking_near(fed_square, 1))
    assert [lot.id for lot in lots] == ["CP-101", "CP-102", "CP-103"]


def test_parking_near_fallback_from_far_away() -> None:
    geelong = Place(name="Geelong", lat=-38.1499, lng=144.3617)
    lots = asyncio.run(_source().parking_near(geelong, 500))
    assert len(lots) == 3


def test_parking_near_empty_store(fed_square: Place) -> None:
    assert asyncio.run(InMemoryDataSource(FixtureStore()).parking_near(fed_square, 900)) == []


def test_parking_near_returns_copies(fed_square: Place) -> None:
    source = _source()
    lots = asyncio.run(source.parking_near(fed_square, 900))
    lots[0].available_spots = 0
    assert source.store.lots[0].available_spots == 88


def test_parking_by_name_matches_any_token() -> None:
    source = _source()
    lots = asyncio.run(source.parking_by_name("Derby caulfield"))
    assert [lot.id for lot in lots] == ["CP-201", "CP-202"]

    assert [lot.id for lot in asyncio.run(source.parking_by_name("  QV  "))] == ["CP-103"]
    assert asyncio.run(source.parking_by_name("")) == []


def test_push_updates_skips_unknown_ids() -> None:
    source = _source()
    updates = asyncio.run(source.push_updates(["CP-101", "NOPE", "CP-202"]))
    assert [u.id for u in updates] == ["CP-101", "CP-202"]
    assert abs(updates[0].available_spots - 88) <= 4
    assert abs(updates[1].available_spots - 9) <= 4


def test_push_updates_stays_within_capacity() -> None:
    store = FixtureStore(
        lots=[
            ParkingLot(id="EMPTY", name="Empty", lat=0.0, lng=0.0, capacity=3, available_spots=0),
            ParkingLot(id="FULL", name="Full", lat=0.0, lng=0.0, capacity=3, available_spots=3),
        ]
    )
    source = InMemoryDataSource(store, rng=random.Random(11))
    for _ in range(200):
        for lot in asyncio.run(source.push_updates(["EMPTY", "FULL"])):
            assert 0 <= lot.available_spots <= lot.capacity


def test_push_updates_refreshes_timestamp() -> None:
    source = _source()
    before = source.store.lots[0].updated_at
    (after,) = asyncio.run(source.push_updates(["CP-101"]))
    assert after.updated_at >= before


def test_parking_detail_and_all_lots() -> None:
    source = _source()
    assert asyncio.run(source.parking_detail("CP-102")).name == "Russell St Car Park"
    assert asyncio.run(source.parking_detail("CP-999")) is None
    assert len(asyncio.run(source.all_lots())) == 5


def test_build_data_source_follows_settings() -> None:
    assert isinstance(build_data_source(Settings(use_mock=True)), InMemoryDataSource)

    remote = build_data_source(Settings(use_mock=False, api_base="http://example.test/api/v1/"))
    assert isinstance(remote, RemoteDataSource)
    assert remote.api_base == "http://example.test/api/v1"
    assert remote.supports_proximity is False
