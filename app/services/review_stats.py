from __future__ import annotations

import logging
import math
import uuid
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.review import Review
from app.models.tour import DEFAULT_RATINGS_AVERAGE, Tour

logger = logging.getLogger(__name__)


def round_rating(value: float) -> float:
    # Half-up to one decimal: 4.66667 -> 4.7, 4.25 -> 4.3
    return math.floor(float(value) * 10 + 0.5) / 10


def calc_average_ratings(db: Session, tour_id: uuid.UUID) -> None:
    count, average = (
        db.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.tour_id == tour_id)
        .one()
    )
    tour = db.query(Tour).filter(Tour.id == tour_id).first()
    if tour is None:
        return
    if count:
        tour.ratings_quantity = int(count)
        tour.ratings_average = round_rating(average)
    else:
        tour.ratings_quantity = 0
        tour.ratings_average = DEFAULT_RATINGS_AVERAGE
    db.add(tour)
    db.flush()
    logger.debug("tour %s ratings: quantity=%s average=%s", tour_id, tour.ratings_quantity, tour.ratings_average)


def recalculate_for_review(db: Session, review: Any) -> None:
    calc_average_ratings(db, review.tour_id)
