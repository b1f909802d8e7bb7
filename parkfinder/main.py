from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from parkfinder.config import load_settings
from parkfinder.models import ResultView
from parkfinder.pipeline import ResolutionPipeline
from parkfinder.sources import build_data_source


def render_view(view: ResultView) -> str:
    lines = [view.status]
    for lot in view.lots:
        price = f"  {lot.price}" if lot.price else ""
        lines.append(
            f"  [{lot.availability:>9}] {lot.name}: {lot.available_spots}/{lot.capacity} spots, "
            f"{lot.distance_m / 1000:.2f} km, {lot.occupancy_pct}% full{price}"
        )
    lines.append(view.advice.intro)
    for opt in view.advice.options:
        lines.append(f"  - {opt.title}: {opt.text} (impact: {opt.impact})")
    return "\n".join(lines)


async def run(query: Optional[str], config_path: str, query_string: Optional[str], updates: int) -> None:
    settings = load_settings(config_path, query_string)
    pipeline = ResolutionPipeline(build_data_source(settings), settings)
    pipeline.subscribe(lambda v: print(render_view(v), end="\n\n"))

    try:
        if query:
            await pipeline.submit(query)
        else:
            await pipeline.load_initial()

        if pipeline.snapshot is None or not pipeline.snapshot.lots:
            return
        # let the feed deliver a few rounds of availability changes
        for _ in range(updates):
            await asyncio.sleep(settings.feed_max_ms / 1000.0)
    finally:
        await pipeline.close()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Find car parks near a destination.")
    parser.add_argument("query", nargs="?", help="destination name; omit to show the CBD")
    parser.add_argument("--config", default="config.json", help="path to config.json")
    parser.add_argument("--query-string", default=None, help='overrides such as "mock=0&api=http://host/api/v1"')
    parser.add_argument("--updates", type=int, default=0, help="feed cycles to watch before exiting")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(args.query, args.config, args.query_string, args.updates))


if __name__ == "__main__":
    main()
