from __future__ import annotations

import asyncio
import enum
import logging
import random
from typing import Awaitable, Callable

from parkfinder.config import Settings
from parkfinder.feed import UpdateFeed, merge_updates
from parkfinder.geo import nearest
from parkfinder.models import ParkingLot, ParkingStats, Place, ResultSnapshot, ResultView, utcnow
from parkfinder.services import build_view, local_stats
from parkfinder.sources import DataSource, DataSourceError

logger = logging.getLogger(__name__)

ViewListener = Callable[[ResultView], None]
SuggestionListener = Callable[[list[Place]], None]

INITIAL_PLACE_NAME = "Melbourne CBD"


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESOLVING = "resolving"
    READY = "ready"


class ResolutionPipeline:
    """Turns typed or chosen destinations into a live list of nearby car parks.

    Each call to ``choose`` takes a new resolve token; a fetch whose token is
    no longer the latest when it returns is dropped, so the most recently
    chosen destination always wins. The current snapshot owns at most one
    running ``UpdateFeed``.
    """

    def __init__(
        self,
        source: DataSource,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self.settings = settings or Settings()
        self.rng = rng or random.Random()

        self.state = PipelineState.IDLE
        self.snapshot: ResultSnapshot | None = None
        self.suggestions: list[Place] = []
        self.map_center = Place(
            name=INITIAL_PLACE_NAME,
            lat=self.settings.map_center_lat,
            lng=self.settings.map_center_lng,
        )

        self._token = 0
        self._debounce_task: asyncio.Task | None = None
        self._feed: UpdateFeed | None = None
        self._view_listeners: list[ViewListener] = []
        self._suggestion_listeners: list[SuggestionListener] = []

    # -- listeners

    def subscribe(self, listener: ViewListener) -> None:
        self._view_listeners.append(listener)

    def subscribe_suggestions(self, listener: SuggestionListener) -> None:
        self._suggestion_listeners.append(listener)

    def _publish(self) -> None:
        current = self.view()
        if current is None:
            return
        for listener in list(self._view_listeners):
            listener(current)

    def _publish_suggestions(self) -> None:
        for listener in list(self._suggestion_listeners):
            listener(list(self.suggestions))

    def view(self) -> ResultView | None:
        return build_view(self.snapshot) if self.snapshot is not None else None

    @property
    def feed(self) -> UpdateFeed | None:
        return self._feed

    # -- search

    def _settled_state(self) -> PipelineState:
        return PipelineState.READY if self.snapshot is not None else PipelineState.IDLE

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    def on_input(self, text: str) -> None:
        """Handle a keystroke. Must be called from inside the event loop."""
        query = (text or "").strip()
        self._cancel_debounce()
        if not query:
            self.suggestions = []
            self._publish_suggestions()
            if self.state == PipelineState.SEARCHING:
                self.state = self._settled_state()
            return
        self.state = PipelineState.SEARCHING
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounced_search(query))

    async def _debounced_search(self, query: str) -> None:
        await asyncio.sleep(self.settings.debounce_ms / 1000.0)
        self.suggestions = await self.search(query)
        self._publish_suggestions()

    async def search(self, query: str) -> list[Place]:
        return await self.source.geo_search(query)

    async def submit(self, text: str) -> ResultSnapshot | None:
        """Enter key: take the first match, or the raw text at the map centre."""
        query = (text or "").strip()
        if not query:
            return None
        center = self.map_center
        token = self._begin_resolve()
        places = await self.search(query)
        if token != self._token:
            logger.debug("Dropping stale submit for %s", query)
            return None
        if places:
            place = places[0]
        else:
            place = Place(name=query, lat=center.lat, lng=center.lng)
        return await self._resolve(place, self._fetch_lots(place, self.settings.search_radius_m), token)

    # -- resolve

    def _stop_feed(self) -> None:
        if self._feed is not None:
            self._feed.stop()
            self._feed = None

    async def _fetch_lots(self, place: Place, radius_m: float) -> list[ParkingLot]:
        try:
            if self.source.supports_proximity:
                return await self.source.parking_near(place, radius_m)
            return await self.source.parking_by_name(place.name)
        except DataSourceError as e:
            logger.warning("Could not load car parks for %s: %s", place.name, e)
            return []

    async def choose(self, place: Place) -> ResultSnapshot | None:
        return await self._resolve(place, self._fetch_lots(place, self.settings.search_radius_m))

    async def load_initial(self) -> ResultSnapshot | None:
        """Show car parks around the default map centre before any search."""
        if self._token > 0:
            return None
        place = self.map_center
        if self.source.supports_proximity:
            fetch = self._fetch_lots(place, self.settings.initial_radius_m)
        else:
            fetch = self._fetch_all()
        return await self._resolve(place, fetch)

    async def _fetch_all(self) -> list[ParkingLot]:
        try:
            return await self.source.all_lots()
        except DataSourceError as e:
            logger.warning("Initial car park load failed: %s", e)
            return []

    def _begin_resolve(self) -> int:
        self._token += 1
        self._cancel_debounce()
        self._stop_feed()
        self.suggestions = []
        self.state = PipelineState.RESOLVING
        return self._token

    async def _resolve(
        self, place: Place, fetch: Awaitable[list[ParkingLot]], token: int | None = None
    ) -> ResultSnapshot | None:
        if token is None:
            token = self._begin_resolve()
        self.map_center = place

        lots = await fetch
        if token != self._token:
            logger.debug("Dropping stale results for %s", place.name)
            return None

        self.snapshot = ResultSnapshot(destination=place, lots=lots, fetched_at=utcnow())
        self.state = PipelineState.READY
        logger.info("Resolved %s: %d car parks", place.name, len(lots))
        self._start_feed(self.snapshot)
        self._publish()
        return self.snapshot

    def _start_feed(self, snapshot: ResultSnapshot) -> None:
        self._feed = UpdateFeed(
            self.source,
            snapshot,
            on_merge=self._on_feed_merge,
            min_interval_s=self.settings.feed_min_ms / 1000.0,
            max_interval_s=self.settings.feed_max_ms / 1000.0,
            rng=self.rng,
        )
        self._feed.start()

    def _on_feed_merge(self, snapshot: ResultSnapshot, changed: list[str]) -> None:
        if snapshot is self.snapshot:
            self._publish()

    # -- per-lot

    async def refresh_lot(self, lot_id: str) -> ParkingLot | None:
        """Re-fetch one lot; keeps the known record when the source has nothing newer."""
        snapshot = self.snapshot
        known = None
        if snapshot is not None:
            known = next((lot for lot in snapshot.lots if lot.id == lot_id), None)

        try:
            fresh = await self.source.parking_detail(lot_id)
        except DataSourceError as e:
            logger.debug("Detail refresh for %s failed: %s", lot_id, e)
            return known
        if fresh is None:
            return known

        if known is not None:
            fresh = known.model_copy(update=fresh.model_dump(exclude_none=True))
        if snapshot is not None and snapshot is self.snapshot and merge_updates(snapshot, [fresh]):
            self._publish()
        return fresh

    def nearest_lot(self, lat: float, lng: float) -> ParkingLot | None:
        if self.snapshot is None or not self.snapshot.lots:
            return None
        point = Place(name="point", lat=lat, lng=lng)
        return nearest(point, self.snapshot.lots)[0]

    async def stats(self) -> ParkingStats:
        try:
            return await self.source.parking_stats()
        except DataSourceError as e:
            logger.debug("Using local chart data: %s", e)
        lots = self.snapshot.lots if self.snapshot is not None else []
        return local_stats(lots, self.rng)

    async def close(self) -> None:
        self._cancel_debounce()
        self._stop_feed()
        await asyncio.sleep(0)
