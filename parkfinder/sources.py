from __future__ import annotations

import abc
import asyncio
import logging
import random
from typing import Any, Iterable
from urllib.parse import quote

import requests
from pydantic import ValidationError

from parkfinder.config import Settings
from parkfinder.data_loader import normalize_lot, normalize_place
from parkfinder.fixtures import FixtureStore
from parkfinder.geo import distance, nearest
from parkfinder.models import ParkingLot, ParkingStats, Place, utcnow
from parkfinder.services import clamp

logger = logging.getLogger(__name__)

GEO_SEARCH_LIMIT = 8
NEAREST_FALLBACK_COUNT = 3
MAX_UPDATE_DELTA = 4


class DataSourceError(Exception):
    """A data source could not produce an answer (network, status or payload)."""


class CapabilityNotSupported(DataSourceError):
    """The operation is not offered by this data source variant."""


class DataSource(abc.ABC):
    supports_proximity: bool = True

    @abc.abstractmethod
    async def geo_search(self, query: str) -> list[Place]: ...

    @abc.abstractmethod
    async def parking_near(self, center: Place, radius_m: float) -> list[ParkingLot]: ...

    @abc.abstractmethod
    async def parking_by_name(self, name: str) -> list[ParkingLot]: ...

    @abc.abstractmethod
    async def push_updates(self, ids: Iterable[str]) -> list[ParkingLot]: ...

    @abc.abstractmethod
    async def parking_detail(self, lot_id: str) -> ParkingLot | None: ...

    @abc.abstractmethod
    async def all_lots(self) -> list[ParkingLot]: ...

    async def parking_stats(self) -> ParkingStats:
        raise CapabilityNotSupported(f"{type(self).__name__} does not serve parking stats")


def _name_tokens(text: str) -> list[str]:
    return [t for t in text.lower().split() if t]


class InMemoryDataSource(DataSource):
    """Fixture-backed source. Each instance owns its own store."""

    def __init__(self, store: FixtureStore | None = None, rng: random.Random | None = None) -> None:
        self.store = store if store is not None else FixtureStore.default()
        self.rng = rng or random.Random()

    async def geo_search(self, query: str) -> list[Place]:
        q = query.lower()
        return [p for p in self.store.places if q in p.name.lower()][:GEO_SEARCH_LIMIT]

    async def parking_near(self, center: Place, radius_m: float) -> list[ParkingLot]:
        lots = self.store.lots
        items = [lot.model_copy() for lot in lots if distance(center, lot) <= radius_m]
        if not items:
            # never leave the user with an empty map while lots exist
            items = [lot.model_copy() for lot in nearest(center, lots, NEAREST_FALLBACK_COUNT)]
        return items

    async def parking_by_name(self, name: str) -> list[ParkingLot]:
        tokens = _name_tokens(name)
        return [
            lot.model_copy()
            for lot in self.store.lots
            if any(t in lot.name.lower() for t in tokens)
        ]

    async def push_updates(self, ids: Iterable[str]) -> list[ParkingLot]:
        changes: list[ParkingLot] = []
        for lot_id in ids:
            i = self.store.find_lot(lot_id)
            if i is None:
                continue
            lot = self.store.lots[i]
            delta = self.rng.randint(-MAX_UPDATE_DELTA, MAX_UPDATE_DELTA)
            updated = lot.model_copy(
                update={
                    "available_spots": clamp(lot.available_spots + delta, 0, lot.capacity),
                    "updated_at": utcnow(),
                }
            )
            self.store.lots[i] = updated
            changes.append(updated.model_copy())
        return changes

    async def parking_detail(self, lot_id: str) -> ParkingLot | None:
        i = self.store.find_lot(lot_id)
        return self.store.lots[i].model_copy() if i is not None else None

    async def all_lots(self) -> list[ParkingLot]:
        return [lot.model_copy() for lot in self.store.lots]


class RemoteDataSource(DataSource):
    """Talks to the parking HTTP service; see backend/main.py for the routes.

    The service has no proximity query, so ``parking_near`` is unsupported and
    callers resolve lots by destination name instead.
    """

    supports_proximity = False

    def __init__(
        self,
        api_base: str,
        timeout_s: float = 10.0,
        fallback: InMemoryDataSource | None = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.timeout_s = timeout_s
        self.fallback = fallback or InMemoryDataSource()

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.api_base}{path}"
        try:
            r = requests.get(url, params=params, timeout=self.timeout_s)
            r.raise_for_status()
            return r.json()
        except requests.RequestException as e:
            raise DataSourceError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"GET {url} returned invalid JSON: {e}") from e

    async def _fetch(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await asyncio.to_thread(self._get_json, path, params)

    async def geo_search(self, query: str) -> list[Place]:
        try:
            data = await self._fetch("/geo/search", {"q": query})
            items = data.get("items") if isinstance(data, dict) else None
            if not isinstance(items, list):
                raise DataSourceError("geo search response has no items list")
        except DataSourceError as e:
            logger.warning("Geo search failed, using local gazetteer: %s", e)
            return await self.fallback.geo_search(query)
        return [p for p in (normalize_place(row) for row in items) if p is not None]

    async def parking_near(self, center: Place, radius_m: float) -> list[ParkingLot]:
        raise CapabilityNotSupported("the parking service has no proximity search")

    async def _fetch_lots(self, params: dict[str, Any] | None = None) -> list[ParkingLot]:
        data = await self._fetch("/parking", params)
        if not isinstance(data, list):
            raise DataSourceError("parking response is not a list")
        lots: list[ParkingLot] = []
        for idx, row in enumerate(data):
            lot = normalize_lot(row, idx)
            if lot is not None:
                lots.append(lot)
        return lots

    async def parking_by_name(self, name: str) -> list[ParkingLot]:
        return await self._fetch_lots({"dest": name})

    async def all_lots(self) -> list[ParkingLot]:
        return await self._fetch_lots()

    def _get_detail(self, lot_id: str) -> ParkingLot | None:
        url = f"{self.api_base}/parking/{quote(lot_id, safe='')}"
        try:
            r = requests.get(url, timeout=self.timeout_s)
            if r.status_code == 404:
                return None
            r.raise_for_status()
            return normalize_lot(r.json())
        except requests.RequestException as e:
            raise DataSourceError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"GET {url} returned invalid JSON: {e}") from e

    async def parking_detail(self, lot_id: str) -> ParkingLot | None:
        return await asyncio.to_thread(self._get_detail, lot_id)

    async def push_updates(self, ids: Iterable[str]) -> list[ParkingLot]:
        changes: list[ParkingLot] = []
        for lot_id in ids:
            try:
                lot = await self.parking_detail(lot_id)
            except DataSourceError as e:
                logger.debug("Skipping update for %s: %s", lot_id, e)
                continue
            if lot is not None:
                changes.append(lot)
        return changes

    async def parking_stats(self) -> ParkingStats:
        data = await self._fetch("/stats/parking")
        if not isinstance(data, dict):
            raise DataSourceError("stats response is not an object")
        try:
            return ParkingStats.model_validate(data)
        except ValidationError as e:
            raise DataSourceError(f"stats response is malformed: {e}") from e


def build_data_source(settings: Settings, rng: random.Random | None = None) -> DataSource:
    store = FixtureStore.from_file(settings.fixture_path) if settings.fixture_path else FixtureStore.default()
    local = InMemoryDataSource(store, rng=rng)
    if settings.use_mock:
        return local
    return RemoteDataSource(settings.api_base, timeout_s=settings.request_timeout_s, fallback=local)
