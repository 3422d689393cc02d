from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import AppError
from app.models.tour import Tour
from app.services.record_query import _serialize_value

EARTH_RADIUS_MI = 3963.2
EARTH_RADIUS_KM = 6378.1
METERS_TO_UNIT = {"mi": 0.000621371, "km": 0.001}

TOP_CHEAP_ALIAS = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}


def tour_stats(db: Session, *, min_rating: float = 4.5) -> list[dict[str, Any]]:
    difficulty = func.upper(Tour.difficulty)
    rows = (
        Tour.default_scope(db.query(Tour))
        .with_entities(
            difficulty.label("difficulty"),
            func.count(Tour.id),
            func.sum(Tour.ratings_quantity),
            func.avg(Tour.ratings_average),
            func.avg(Tour.price),
            func.min(Tour.price),
            func.max(Tour.price),
        )
        .filter(Tour.ratings_average >= min_rating)
        .group_by(difficulty)
        .order_by(func.avg(Tour.price).asc())
        .all()
    )
    return [
        {
            "_id": row[0],
            "numTours": int(row[1] or 0),
            "numRatings": int(row[2] or 0),
            "avgRating": float(row[3]) if row[3] is not None else None,
            "avgPrice": float(row[4]) if row[4] is not None else None,
            "minPrice": float(row[5]) if row[5] is not None else None,
            "maxPrice": float(row[6]) if row[6] is not None else None,
        }
        for row in rows
    ]


def _parse_start_date(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        parsed = raw
    else:
        text = str(raw or "").strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def monthly_plan(db: Session, year: int) -> list[dict[str, Any]]:
    """Tour starts per month of ``year``, busiest month first (at most 12 entries)."""
    by_month: dict[int, list[str]] = defaultdict(list)
    for tour in Tour.default_scope(db.query(Tour)).order_by(Tour.created_at.asc(), Tour.id.asc()).all():
        for raw in tour.start_dates or []:
            started = _parse_start_date(raw)
            if started is None or started.year != year:
                continue
            by_month[started.month].append(tour.name)
    plan = [
        {"month": month, "numTourStarts": len(names), "tours": names}
        for month, names in by_month.items()
    ]
    plan.sort(key=lambda item: (-item["numTourStarts"], item["month"]))
    return plan[:12]


def parse_latlng_or_400(latlng: str) -> tuple[float, float]:
    parts = [p.strip() for p in str(latlng or "").split(",")]
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise AppError("Please provide latitude and longitude in the format lat,lng.", 400)
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        raise AppError("Please provide latitude and longitude in the format lat,lng.", 400)


def _unit_or_400(unit: str) -> str:
    value = str(unit or "").strip().lower()
    if value not in METERS_TO_UNIT:
        raise AppError("Unit must be either mi or km.", 400)
    return value


def _tour_point(tour: Tour) -> tuple[float, float] | None:
    location = tour.start_location or {}
    coordinates = location.get("coordinates") if isinstance(location, dict) else None
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        return None
    try:
        lng, lat = float(coordinates[0]), float(coordinates[1])
    except (TypeError, ValueError):
        return None
    return lat, lng


def central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle angle in radians between two points (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


def tours_within(db: Session, *, distance: float, latlng: str, unit: str) -> list[Tour]:
    lat, lng = parse_latlng_or_400(latlng)
    unit = _unit_or_400(unit)
    radius = float(distance) / (EARTH_RADIUS_MI if unit == "mi" else EARTH_RADIUS_KM)
    found: list[Tour] = []
    for tour in Tour.default_scope(db.query(Tour)).order_by(Tour.created_at.desc(), Tour.id.asc()).all():
        point = _tour_point(tour)
        if point is None:
            continue
        if central_angle(lat, lng, point[0], point[1]) <= radius:
            found.append(tour)
    return found


def distances(db: Session, *, latlng: str, unit: str) -> list[dict[str, Any]]:
    lat, lng = parse_latlng_or_400(latlng)
    multiplier = METERS_TO_UNIT[_unit_or_400(unit)]
    result: list[dict[str, Any]] = []
    for tour in Tour.default_scope(db.query(Tour)).all():
        point = _tour_point(tour)
        if point is None:
            continue
        meters = central_angle(lat, lng, point[0], point[1]) * EARTH_RADIUS_KM * 1000
        result.append({"id": _serialize_value(tour.id), "name": tour.name, "distance": meters * multiplier})
    result.sort(key=lambda item: item["distance"])
    return result
