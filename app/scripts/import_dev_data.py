from __future__ import annotations

import argparse
import json
import uuid
from pathlib import Path
from typing import Any

from pydantic.alias_generators import to_snake
from sqlalchemy.orm import Session

from app.api.v1.tours import slugify
from app.core.security import hash_password
from app.db.session import SessionLocal
from app.models.booking import Booking
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User
from app.services.review_stats import calc_average_ratings

_TOUR_KEYS = {column.key for column in Tour.__table__.columns} - {"id", "version_id", "created_at", "updated_at"}
_USER_KEYS = {"name", "email", "photo", "role", "active"}


def _source_id(item: dict[str, Any]) -> str | None:
    raw = item.get("_id", item.get("id"))
    return None if raw is None else str(raw)


def _remember(ids: dict[str, uuid.UUID], item: dict[str, Any]) -> uuid.UUID:
    # Dump files may carry foreign ids (e.g. 24-char hex); they are mapped to fresh UUIDs.
    new_id = uuid.uuid4()
    source = _source_id(item)
    if source is not None:
        ids[source] = new_id
    return new_id


def _snake_keys(item: dict[str, Any], allowed: set[str]) -> dict[str, Any]:
    values = {}
    for key, value in item.items():
        snake = to_snake(str(key))
        if snake in allowed:
            values[snake] = value
    return values


def import_data(
    db: Session,
    *,
    tours: list[dict[str, Any]],
    users: list[dict[str, Any]],
    reviews: list[dict[str, Any]],
) -> tuple[int, int, int]:
    ids: dict[str, uuid.UUID] = {}

    user_rows = []
    for item in users:
        values = _snake_keys(item, _USER_KEYS)
        values["email"] = str(values.get("email") or "").strip().lower()
        user = User(id=_remember(ids, item), password_hash=hash_password(str(item["password"])), **values)
        user_rows.append(user)
        db.add(user)

    tour_rows = []
    for item in tours:
        values = _snake_keys(item, _TOUR_KEYS)
        values["slug"] = slugify(values.get("name", ""))
        tour = Tour(id=_remember(ids, item), **values)
        tour_rows.append(tour)
        db.add(tour)
    db.flush()

    for tour in tour_rows:
        tour.guides = [str(ids.get(str(gid), gid)) for gid in (tour.guides or [])]

    review_count = 0
    touched: set[uuid.UUID] = set()
    for item in reviews:
        tour_id = ids.get(str(item.get("tour")))
        user_id = ids.get(str(item.get("user")))
        if tour_id is None or user_id is None:
            continue
        db.add(Review(review=item["review"], rating=int(item["rating"]), tour_id=tour_id, user_id=user_id))
        touched.add(tour_id)
        review_count += 1
    db.flush()

    for tour_id in touched:
        calc_average_ratings(db, tour_id)
    db.commit()
    return len(tour_rows), len(user_rows), review_count


def delete_data(db: Session) -> None:
    db.query(Booking).delete()
    db.query(Review).delete()
    db.query(Tour).delete()
    db.query(User).delete()
    db.commit()


def _load(directory: Path, name: str) -> list[dict[str, Any]]:
    return json.loads((directory / name).read_text(encoding="utf-8"))


def main() -> None:
    parser = argparse.ArgumentParser(description="Load or wipe development tours, users and reviews.")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="do_import", action="store_true")
    action.add_argument("--delete", dest="do_delete", action="store_true")
    parser.add_argument("--dir", default="dev-data", help="directory with tours.json, users.json and reviews.json")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.do_delete:
            delete_data(db)
            print("dev data deleted")
            return
        directory = Path(args.dir)
        tours, users, reviews = import_data(
            db,
            tours=_load(directory, "tours.json"),
            users=_load(directory, "users.json"),
            reviews=_load(directory, "reviews.json"),
        )
    finally:
        db.close()
    print(f"dev data loaded: tours={tours}, users={users}, reviews={reviews}")


if __name__ == "__main__":
    main()
