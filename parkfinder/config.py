from __future__ import annotations

import json
import logging
import os
from typing import Any, Mapping
from urllib.parse import parse_qs

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    # Serve everything from the in-memory fixtures instead of the HTTP service.
    use_mock: bool = True
    api_base: str = "http://localhost:4000/api/v1"

    search_radius_m: float = 900
    initial_radius_m: float = 1200

    debounce_ms: int = 250
    feed_min_ms: int = 2500
    feed_max_ms: int = 4500
    request_timeout_s: float = 10.0

    # Default map view (Melbourne CBD)
    map_center_lat: float = -37.8136
    map_center_lng: float = 144.9631

    # Optional CSV/JSON/GeoJSON file to seed the in-memory store from.
    fixture_path: str | None = None


def _read_config_file(path: str) -> dict[str, Any]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not load %s, using defaults: %s", path, e)
        return {}
    if not isinstance(obj, dict):
        logger.warning("Ignoring %s: expected a JSON object", path)
        return {}
    # config.json uses the browser's camelCase keys
    renames = {"useMock": "use_mock", "apiBase": "api_base"}
    return {renames.get(k, k): v for k, v in obj.items()}


def _env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    use_mock = os.getenv("PARKFINDER_USE_MOCK")
    if use_mock is not None and use_mock.strip():
        out["use_mock"] = use_mock.strip().lower() not in ("0", "false", "no")
    api_base = os.getenv("PARKFINDER_API_BASE", "").strip()
    if api_base:
        out["api_base"] = api_base
    fixture_path = os.getenv("PARKFINDER_FIXTURE_PATH", "").strip()
    if fixture_path:
        out["fixture_path"] = fixture_path
    return out


def _query_overrides(query: str | Mapping[str, str] | None) -> dict[str, Any]:
    if query is None:
        return {}
    if isinstance(query, str):
        params = {k: v[-1] for k, v in parse_qs(query.lstrip("?"), keep_blank_values=True).items()}
    else:
        params = dict(query)

    out: dict[str, Any] = {}
    if "mock" in params:
        out["use_mock"] = params["mock"] != "0"
    if "api" in params:
        out["api_base"] = params["api"]
    return out


def load_settings(
    config_path: str = "config.json",
    query: str | Mapping[str, str] | None = None,
) -> Settings:
    """Defaults, then config file, then environment, then query string."""
    merged: dict[str, Any] = {}
    merged.update(_read_config_file(config_path))
    merged.update(_env_overrides())
    merged.update(_query_overrides(query))

    loaded = Settings(**merged)
    logger.info("Config loaded: use_mock=%s api_base=%s", loaded.use_mock, loaded.api_base)
    return loaded
