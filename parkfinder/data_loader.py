from __future__ import annotations

import csv
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from pydantic import ValidationError

from parkfinder.models import ParkingLot, Place, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadResult:
    lots: list[ParkingLot]
    places: list[Place] = field(default_factory=list)
    source: str = ""


def _try_parse_float(v: object) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    if s == "":
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _try_parse_int(v: object) -> int | None:
    f = _try_parse_float(v)
    return int(f) if f is not None else None


def _row_get(row: dict, keys: Iterable[str]) -> object | None:
    for k in keys:
        if k in row and row[k] not in (None, ""):
            return row[k]
    return None


def _parse_timestamp(v: object) -> datetime:
    if isinstance(v, datetime):
        return v
    if isinstance(v, str) and v.strip():
        try:
            # JS toISOString() ends in "Z"
            return datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    return utcnow()


def normalize_lot(row: dict[str, Any], idx: int = 0) -> ParkingLot | None:
    """Map a wire/fixture record onto ParkingLot.

    The HTTP service calls the free-spot count ``available``; the client model
    calls it ``available_spots``. Records without coordinates are dropped.
    """
    if not isinstance(row, dict):
        return None

    lat = _try_parse_float(_row_get(row, ["lat", "latitude", "LAT", "Y"]))
    lng = _try_parse_float(_row_get(row, ["lng", "lon", "longitude", "LON", "X"]))
    if lat is None or lng is None:
        return None

    lot_id = str(_row_get(row, ["id", "ID", "lot_id", "LOT_ID", "OBJECTID"]) or idx)
    name = _row_get(row, ["name", "NAME", "LOT_NAME", "label"])

    available = row.get("available_spots")
    if not isinstance(available, (int, float)) or isinstance(available, bool):
        available = _try_parse_int(row.get("available"))
    capacity = _try_parse_int(_row_get(row, ["capacity", "CAPACITY"]))
    price = _row_get(row, ["price", "PRICE"])

    try:
        return ParkingLot(
            id=lot_id,
            name=str(name) if name is not None else lot_id,
            lat=lat,
            lng=lng,
            capacity=max(1, capacity or 0),
            available_spots=int(available or 0),
            price=str(price) if price is not None else None,
            updated_at=_parse_timestamp(row.get("updated_at")),
        )
    except ValidationError as e:
        logger.warning("Skipping malformed parking record %s: %s", lot_id, e)
        return None


def normalize_place(row: dict[str, Any]) -> Place | None:
    if not isinstance(row, dict):
        return None
    lat = _try_parse_float(row.get("lat"))
    lng = _try_parse_float(_row_get(row, ["lng", "lon"]))
    name = str(row.get("name") or "").strip()
    if lat is None or lng is None or not name:
        return None
    place_id = _row_get(row, ["place_id", "id"])
    return Place(id=str(place_id) if place_id is not None else None, name=name, lat=lat, lng=lng)


def _point_from_geometry(geom: dict) -> tuple[float, float] | None:
    if not isinstance(geom, dict):
        return None
    coords = geom.get("coordinates")
    gtype = geom.get("type")

    if gtype == "Point" and isinstance(coords, (list, tuple)) and len(coords) >= 2:
        lat, lng = _try_parse_float(coords[1]), _try_parse_float(coords[0])
        if lat is None or lng is None:
            return None
        return lat, lng

    if gtype == "Polygon" and isinstance(coords, list) and coords:
        # vertex average of the outer ring; lots are small enough for this
        ring = [p for p in coords[0] if isinstance(p, (list, tuple)) and len(p) >= 2]
        points = [(_try_parse_float(p[1]), _try_parse_float(p[0])) for p in ring]
        if not points or any(lat is None or lng is None for lat, lng in points):
            return None
        lat = sum(p[0] for p in points) / len(points)
        lng = sum(p[1] for p in points) / len(points)
        return lat, lng

    return None


def _normalize_rows(rows: Iterable[Any]) -> list[ParkingLot]:
    lots: list[ParkingLot] = []
    for idx, row in enumerate(rows):
        lot = normalize_lot(row, idx)
        if lot is not None:
            lots.append(lot)
    return lots


def load_store_from_file(path: str) -> LoadResult:
    """Read seed lots (and optionally places) from a CSV, JSON or GeoJSON file.

    JSON may be a bare list of lot records or ``{"lots": [...], "places": [...]}``.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Parking fixture file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            lots = _normalize_rows(csv.DictReader(f))
        return LoadResult(lots=lots, source=path)

    if ext in (".json", ".geojson"):
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)

        if isinstance(obj, dict) and "features" in obj:
            rows = []
            for feat in obj.get("features") or []:
                if not isinstance(feat, dict):
                    continue
                row = dict(feat.get("properties") or {})
                point = _point_from_geometry(feat.get("geometry") or {})
                if point is not None:
                    row.setdefault("lat", point[0])
                    row.setdefault("lng", point[1])
                rows.append(row)
            return LoadResult(lots=_normalize_rows(rows), source=path)

        if isinstance(obj, dict) and "lots" in obj:
            places = [p for p in (normalize_place(r) for r in obj.get("places") or []) if p is not None]
            return LoadResult(lots=_normalize_rows(obj["lots"]), places=places, source=path)

        if isinstance(obj, list):
            return LoadResult(lots=_normalize_rows(obj), source=path)

        raise ValueError(f"Unsupported JSON structure in {path}")

    raise ValueError(f"Unsupported file extension: {ext} (expected .csv/.json/.geojson)")
