from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Iterable

from parkfinder.models import ParkingLot, ResultSnapshot
from parkfinder.sources import DataSource, DataSourceError

logger = logging.getLogger(__name__)

MergeHandler = Callable[[ResultSnapshot, list[str]], None]


def merge_updates(snapshot: ResultSnapshot, updates: Iterable[ParkingLot]) -> list[str]:
    """Replace lots in place by id. Returns the ids that were replaced."""
    index = {lot.id: i for i, lot in enumerate(snapshot.lots)}
    changed: list[str] = []
    for update in updates:
        i = index.get(update.id)
        if i is None:
            continue
        # re-validate so available_spots is clamped to capacity
        snapshot.lots[i] = ParkingLot.model_validate(update.model_dump())
        changed.append(update.id)
    return changed


class UpdateFeed:
    """Polls a data source for availability changes of one snapshot's lots.

    The timer is re-armed after each tick completes, with a fresh interval
    drawn from ``[min_interval_s, max_interval_s)``.
    """

    def __init__(
        self,
        source: DataSource,
        snapshot: ResultSnapshot,
        on_merge: MergeHandler | None = None,
        min_interval_s: float = 2.5,
        max_interval_s: float = 4.5,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self.snapshot = snapshot
        self.on_merge = on_merge
        self.min_interval_s = min_interval_s
        self.max_interval_s = max_interval_s
        self.rng = rng or random.Random()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_interval(self) -> float:
        return self.min_interval_s + self.rng.random() * (self.max_interval_s - self.min_interval_s)

    def start(self) -> None:
        if self.running:
            return
        if not self.snapshot.lots:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._log_exit)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def tick(self) -> list[str]:
        updates = await self.source.push_updates(self.snapshot.lot_ids)
        changed = merge_updates(self.snapshot, updates)
        logger.debug("Feed merged %d of %d lots", len(changed), len(self.snapshot.lots))
        if changed and self.on_merge is not None:
            self.on_merge(self.snapshot, changed)
        return changed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.next_interval())
            try:
                await self.tick()
            except DataSourceError as e:
                logger.warning("Availability update failed, retrying next cycle: %s", e)

    @staticmethod
    def _log_exit(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Update feed stopped: %r", exc)
