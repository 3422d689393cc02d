import re
import unicodedata
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import restrict_to
from app.db.session import get_db
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User
from app.schemas.tour import TourCreate, TourUpdate
from app.services import handler_factory as factory
from app.services.query_builder import Projection
from app.services.record_query import to_document
from app.services.request_params import request_list_params
from app.services.tour_insights import TOP_CHEAP_ALIAS, distances, monthly_plan, tour_stats, tours_within

router = APIRouter()

_GUIDE_PROJECTION = Projection(exclude=("versionId", "passwordChangedAt"))
_REVIEW_AUTHOR_PROJECTION = Projection(include=("name", "photo"))


def slugify(name: str) -> str:
    text = unicodedata.normalize("NFKD", str(name or "")).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _with_slug(values: dict[str, Any]) -> dict[str, Any]:
    if values.get("name"):
        values["slug"] = slugify(values["name"])
    return values


def _populate_tour(db: Session, tour: Tour) -> dict[str, Any]:
    guide_ids = [factory.parse_id_or_400(gid, "guide") for gid in (tour.guides or [])]
    guides = []
    if guide_ids:
        rows = User.default_scope(db.query(User)).filter(User.id.in_(guide_ids)).all()
        guides = [to_document(row, _GUIDE_PROJECTION) for row in rows]

    reviews = []
    review_rows = (
        db.query(Review)
        .filter(Review.tour_id == tour.id)
        .order_by(Review.created_at.desc(), Review.id.asc())
        .all()
    )
    authors = {}
    author_ids = {row.user_id for row in review_rows}
    if author_ids:
        authors = {
            row.id: to_document(row, _REVIEW_AUTHOR_PROJECTION)
            for row in User.default_scope(db.query(User)).filter(User.id.in_(author_ids)).all()
        }
    for row in review_rows:
        doc = to_document(row)
        doc["user"] = authors.get(row.user_id)
        reviews.append(doc)

    return {"durationWeeks": tour.duration_weeks, "guides": guides, "reviews": reviews}


@router.get("/top-5-cheap")
def top_five_cheap(request: Request, db: Session = Depends(get_db)):
    params = request_list_params(request)
    params.update(TOP_CHEAP_ALIAS)
    return factory.get_all(db, Tour, params)


@router.get("/tour-stats")
def get_tour_stats(db: Session = Depends(get_db)):
    return {"status": "success", "data": {"stats": tour_stats(db)}}


@router.get("/monthly-plan/{year}", dependencies=[Depends(restrict_to("admin", "lead-guide", "guide"))])
def get_monthly_plan(year: int, db: Session = Depends(get_db)):
    return {"status": "success", "data": {"plan": monthly_plan(db, year)}}


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
def get_tours_within(distance: float, latlng: str, unit: str, db: Session = Depends(get_db)):
    rows = tours_within(db, distance=distance, latlng=latlng, unit=unit)
    docs = [to_document(row) for row in rows]
    return {"status": "success", "results": len(docs), "data": {"data": docs}}


@router.get("/distances/{latlng}/unit/{unit}")
def get_distances(latlng: str, unit: str, db: Session = Depends(get_db)):
    return {"status": "success", "data": {"data": distances(db, latlng=latlng, unit=unit)}}


@router.get("")
def get_all_tours(request: Request, db: Session = Depends(get_db)):
    return factory.get_all(db, Tour, request_list_params(request))


@router.post("", status_code=201, dependencies=[Depends(restrict_to("admin", "lead-guide"))])
def create_tour(payload: TourCreate, db: Session = Depends(get_db)):
    values = _with_slug(payload.model_dump(mode="json", exclude_none=True))
    return factory.create_one(db, Tour, values)


@router.get("/{id}")
def get_tour(id: str, db: Session = Depends(get_db)):
    return factory.get_one(db, Tour, id, populate=_populate_tour)


@router.patch("/{id}", dependencies=[Depends(restrict_to("admin", "lead-guide"))])
def update_tour(id: str, payload: TourUpdate, db: Session = Depends(get_db)):
    values = _with_slug(payload.model_dump(mode="json", exclude_unset=True))
    return factory.update_one(db, Tour, id, values)


@router.delete("/{id}", status_code=204, dependencies=[Depends(restrict_to("admin", "lead-guide"))])
def delete_tour(id: str, db: Session = Depends(get_db)):
    factory.delete_one(db, Tour, id)
    return Response(status_code=204)
