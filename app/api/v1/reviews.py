from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, restrict_to
from app.core.errors import AppError
from app.db.session import get_db
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User
from app.schemas.review import ReviewCreate, ReviewUpdate
from app.services import handler_factory as factory
from app.services.query_builder import Projection
from app.services.record_query import to_document
from app.services.request_params import request_list_params
from app.services.review_stats import recalculate_for_review

router = APIRouter(dependencies=[Depends(get_current_user)])
tour_reviews_router = APIRouter(dependencies=[Depends(get_current_user)])

_AUTHOR_PROJECTION = Projection(include=("name", "photo"))


def _populate_review(db: Session, review: Review) -> dict[str, Any]:
    author = User.default_scope(db.query(User)).filter(User.id == review.user_id).first()
    return {"user": to_document(author, _AUTHOR_PROJECTION) if author is not None else None}


def _ensure_can_modify(user: User, review: Review) -> None:
    if user.role != "admin" and review.user_id != user.id:
        raise AppError("You can only modify your own reviews", 403)


def _create_review(db: Session, payload: ReviewCreate, user: User, tour_id: Any | None) -> dict[str, Any]:
    target = tour_id if tour_id is not None else payload.tour_id
    if target is None:
        raise AppError("Review must belong to a tour", 400)
    tour = factory.find_one_or_404(db, Tour, target)
    values = {"review": payload.review, "rating": payload.rating, "tour_id": tour.id, "user_id": user.id}
    return factory.create_one(db, Review, values, after_flush=recalculate_for_review)


@router.get("")
def get_all_reviews(request: Request, db: Session = Depends(get_db)):
    return factory.get_all(db, Review, request_list_params(request))


@router.post("", status_code=201)
def create_review(
    payload: ReviewCreate,
    user: User = Depends(restrict_to("user")),
    db: Session = Depends(get_db),
):
    return _create_review(db, payload, user, None)


@router.get("/{id}")
def get_review(id: str, db: Session = Depends(get_db)):
    return factory.get_one(db, Review, id, populate=_populate_review)


@router.patch("/{id}")
def update_review(
    id: str,
    payload: ReviewUpdate,
    user: User = Depends(restrict_to("user", "admin")),
    db: Session = Depends(get_db),
):
    _ensure_can_modify(user, factory.find_one_or_404(db, Review, id))
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return factory.update_one(db, Review, id, changes, after_flush=recalculate_for_review)


@router.delete("/{id}", status_code=204)
def delete_review(
    id: str,
    user: User = Depends(restrict_to("user", "admin")),
    db: Session = Depends(get_db),
):
    _ensure_can_modify(user, factory.find_one_or_404(db, Review, id))
    factory.delete_one(db, Review, id, after_flush=recalculate_for_review)
    return Response(status_code=204)


@tour_reviews_router.get("")
def get_tour_reviews(tour_id: str, request: Request, db: Session = Depends(get_db)):
    tid = factory.parse_id_or_400(tour_id, "tour")
    return factory.get_all(db, Review, request_list_params(request), base_filter={"tour_id": tid})


@tour_reviews_router.post("", status_code=201)
def create_tour_review(
    tour_id: str,
    payload: ReviewCreate,
    user: User = Depends(restrict_to("user")),
    db: Session = Depends(get_db),
):
    return _create_review(db, payload, user, tour_id)
