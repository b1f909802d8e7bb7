from __future__ import annotations

import math
from typing import Iterable, Protocol, TypeVar

EARTH_RADIUS_M = 6371000.0


class LatLng(Protocol):
    lat: float
    lng: float


P = TypeVar("P", bound=LatLng)


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lng / 2) ** 2
    # rounding can push h a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def distance(a: LatLng, b: LatLng) -> float:
    """Great-circle distance in meters between two objects with lat/lng."""
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def nearest(origin: LatLng, points: Iterable[P], k: int = 1) -> list[P]:
    """The k points closest to origin. Ties keep their input order."""
    ranked = sorted(points, key=lambda p: distance(origin, p))
    return ranked[: max(0, int(k))]
