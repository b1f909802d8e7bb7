from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from flask import Flask, jsonify, request

from parkfinder.geo import haversine_m
from parkfinder.models import EnvironmentInfo, HourCount, OccupancyStat, ParkingStats

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 900.0
EMPTY_QUERY_PLACES = 5


@dataclass(frozen=True)
class ServiceLot:
    id: str
    name: str
    lat: float
    lng: float
    capacity: int
    available: int


@dataclass(frozen=True)
class GazetteerEntry:
    name: str
    lat: float
    lng: float


def _default_lots() -> list[ServiceLot]:
    return [
        ServiceLot("PARK001", "Flinders St Car Park", -37.8183, 144.9671, 200, 35),
        ServiceLot("PARK002", "Fed Square Parking", -37.8179, 144.9691, 150, 50),
        ServiceLot("PARK003", "QV Melbourne Parking", -37.8103, 144.9643, 500, 120),
        ServiceLot("PARK004", "Melbourne Central CP", -37.8107, 144.9626, 450, 80),
        ServiceLot("PARK005", "Southgate Car Park", -37.8203, 144.9657, 300, 60),
    ]


def _default_places() -> list[GazetteerEntry]:
    return [
        GazetteerEntry("Flinders Street", -37.8183, 144.9671),
        GazetteerEntry("Flinders St Station", -37.8183, 144.9671),
        GazetteerEntry("Federation Square", -37.8179, 144.9691),
        GazetteerEntry("Melbourne Central", -37.8107, 144.9626),
        GazetteerEntry("QV Melbourne", -37.8103, 144.9643),
        GazetteerEntry("Southgate", -37.8203, 144.9657),
        GazetteerEntry("Collins Street", -37.8189, 144.9675),
        GazetteerEntry("Queen Street", -37.8173, 144.9590),
    ]


def _default_stats() -> ParkingStats:
    return ParkingStats(
        average_occupancy=[
            OccupancyStat(car_park="Flinders St", percentage=60),
            OccupancyStat(car_park="Fed Square", percentage=45),
        ],
        busiest_hours=[
            HourCount(hour="08:00", count=50),
            HourCount(hour="09:00", count=80),
            HourCount(hour="10:00", count=120),
        ],
    )


@dataclass
class ServiceStore:
    lots: list[ServiceLot] = field(default_factory=_default_lots)
    places: list[GazetteerEntry] = field(default_factory=_default_places)
    stats: ParkingStats = field(default_factory=_default_stats)
    environment: EnvironmentInfo = field(
        default_factory=lambda: EnvironmentInfo(
            public_transport="Take Tram 70 from Swanston St, 5 min walk to destination",
            co2_saved_kg=3.5,
        )
    )

    def search_lots(
        self,
        dest: str = "",
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius_m: float = DEFAULT_RADIUS_M,
    ) -> list[ServiceLot]:
        results = list(self.lots)

        if lat is not None and lng is not None:
            results = [p for p in results if haversine_m(lat, lng, p.lat, p.lng) <= radius_m]

        tokens = [t for t in dest.lower().split() if t]
        if tokens:
            results = [p for p in results if any(t in p.name.lower() for t in tokens)]

        return results

    def get_lot(self, lot_id: str) -> Optional[ServiceLot]:
        return next((p for p in self.lots if p.id == lot_id), None)

    def search_places(self, q: str) -> list[GazetteerEntry]:
        q = q.lower().strip()
        if not q:
            return self.places[:EMPTY_QUERY_PLACES]
        return [p for p in self.places if q in p.name.lower()]


def _parse_float_arg(v: Any) -> Optional[float]:
    if v is None:
        return None
    s = str(v).strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        raise ValueError(f"{v!r} is not a number") from None


def create_app(store: Optional[ServiceStore] = None) -> Flask:
    app = Flask(__name__)
    store = store or ServiceStore()

    @app.after_request
    def add_cors_headers(resp):
        resp.headers["Access-Control-Allow-Origin"] = "*"
        resp.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return resp

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "lots_loaded": len(store.lots)})

    @app.route("/api/v1/parking")
    def parking():
        dest = request.args.get("dest") or ""
        try:
            lat = _parse_float_arg(request.args.get("lat"))
            lng = _parse_float_arg(request.args.get("lng"))
            radius = _parse_float_arg(request.args.get("radius"))
        except ValueError as e:
            return jsonify({"error": f"lat/lng/radius must be numbers: {e}"}), 400

        results = store.search_lots(
            dest=dest,
            lat=lat,
            lng=lng,
            radius_m=radius if radius is not None else DEFAULT_RADIUS_M,
        )
        return jsonify([asdict(p) for p in results])

    @app.route("/api/v1/parking/<lot_id>")
    def parking_detail(lot_id: str):
        found = store.get_lot(lot_id)
        if found is None:
            return jsonify({"error": "Not found"}), 404
        return jsonify(asdict(found))

    @app.route("/api/v1/geo/search")
    def geo_search():
        q = request.args.get("q") or ""
        return jsonify({"items": [asdict(p) for p in store.search_places(q)]})

    @app.route("/api/v1/environment")
    def environment():
        return jsonify(store.environment.model_dump(by_alias=True))

    @app.route("/api/v1/stats/parking")
    def parking_stats():
        return jsonify(store.stats.model_dump(by_alias=True))

    return app


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.getenv("PORT", "4000"))
    logger.info("Backend running on http://localhost:%d", port)
    app.run(host="0.0.0.0", port=port, debug=True)
