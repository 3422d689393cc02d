from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, restrict_to
from app.db.session import get_db
from app.models.booking import Booking
from app.models.tour import Tour
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingUpdate
from app.services import handler_factory as factory
from app.services.record_query import to_document
from app.services.request_params import request_list_params

router = APIRouter(dependencies=[Depends(get_current_user)])
tour_bookings_router = APIRouter(dependencies=[Depends(restrict_to("admin", "lead-guide"))])

_MANAGERS = ("admin", "lead-guide")


@router.get("/me")
def get_my_tours(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    tour_ids = [row.tour_id for row in db.query(Booking.tour_id).filter(Booking.user_id == user.id).all()]
    tours = []
    if tour_ids:
        tours = (
            Tour.default_scope(db.query(Tour))
            .filter(Tour.id.in_(tour_ids))
            .order_by(Tour.created_at.desc(), Tour.id.asc())
            .all()
        )
    docs = [to_document(tour) for tour in tours]
    return {"status": "success", "results": len(docs), "data": {"data": docs}}


@router.get("", dependencies=[Depends(restrict_to(*_MANAGERS))])
def get_all_bookings(request: Request, db: Session = Depends(get_db)):
    return factory.get_all(db, Booking, request_list_params(request))


@router.post("", status_code=201, dependencies=[Depends(restrict_to(*_MANAGERS))])
def create_booking(payload: BookingCreate, db: Session = Depends(get_db)):
    tour = factory.find_one_or_404(db, Tour, payload.tour_id)
    buyer = factory.find_one_or_404(db, User, payload.user_id)
    values = {"tour_id": tour.id, "user_id": buyer.id, "price": payload.price, "paid": payload.paid}
    return factory.create_one(db, Booking, values)


@router.get("/{id}", dependencies=[Depends(restrict_to(*_MANAGERS))])
def get_booking(id: str, db: Session = Depends(get_db)):
    return factory.get_one(db, Booking, id)


@router.patch("/{id}", dependencies=[Depends(restrict_to(*_MANAGERS))])
def update_booking(id: str, payload: BookingUpdate, db: Session = Depends(get_db)):
    return factory.update_one(db, Booking, id, payload.model_dump(exclude_unset=True, exclude_none=True))


@router.delete("/{id}", status_code=204, dependencies=[Depends(restrict_to(*_MANAGERS))])
def delete_booking(id: str, db: Session = Depends(get_db)):
    factory.delete_one(db, Booking, id)
    return Response(status_code=204)


@tour_bookings_router.get("")
def get_tour_bookings(tour_id: str, request: Request, db: Session = Depends(get_db)):
    tid = factory.parse_id_or_400(tour_id, "tour")
    return factory.get_all(db, Booking, request_list_params(request), base_filter={"tour_id": tid})
