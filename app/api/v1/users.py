from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_user, restrict_to
from app.core.errors import AppError
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import (
    ForgotPasswordIn,
    LoginIn,
    ResetPasswordIn,
    SignupIn,
    UpdateMeIn,
    UpdatePasswordIn,
    UserAdminUpdate,
)
from app.services import auth_service
from app.services import handler_factory as factory
from app.services.record_query import to_document
from app.services.request_params import request_list_params

router = APIRouter()


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


@router.post("/signup", status_code=201)
def signup(payload: SignupIn, request: Request, db: Session = Depends(get_db)):
    user = auth_service.signup(db, payload, profile_url=f"{_base_url(request)}/me")
    return auth_service.send_token(user, 201, request)


@router.post("/login")
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    user = auth_service.login(db, payload.email, payload.password)
    return auth_service.send_token(user, 200, request)


@router.get("/logout")
def logout():
    return auth_service.logout_response()


@router.post("/forgotPassword")
def forgot_password(payload: ForgotPasswordIn, request: Request, db: Session = Depends(get_db)):
    prefix = f"{_base_url(request)}{settings.API_PREFIX}/users/resetPassword"
    auth_service.forgot_password(db, payload.email, reset_url_prefix=prefix)
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/resetPassword/{token}")
def reset_password(token: str, payload: ResetPasswordIn, request: Request, db: Session = Depends(get_db)):
    user = auth_service.reset_password(db, token, payload)
    return auth_service.send_token(user, 200, request)


@router.patch("/updatePassword")
def update_password(
    payload: UpdatePasswordIn,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = auth_service.update_password(db, user, payload)
    return auth_service.send_token(user, 200, request)


@router.get("/me")
def get_me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return factory.get_one(db, User, user.id)


@router.patch("/updateMe")
def update_me(payload: UpdateMeIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.password is not None or payload.password_confirm is not None:
        raise AppError("This route is not for password updates. Please use /updatePassword.", 400)
    changes = payload.model_dump(include={"name", "email"}, exclude_unset=True, exclude_none=True)
    if changes:
        for key, value in changes.items():
            setattr(user, key, value)
        db.add(user)
        db.commit()
        db.refresh(user)
    return {"status": "success", "data": {"user": to_document(user)}}


@router.delete("/deleteMe", status_code=204)
def delete_me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user.active = False
    db.add(user)
    db.commit()
    return Response(status_code=204)


@router.get("", dependencies=[Depends(restrict_to("admin"))])
def get_all_users(request: Request, db: Session = Depends(get_db)):
    return factory.get_all(db, User, request_list_params(request))


@router.post("", dependencies=[Depends(restrict_to("admin"))])
def create_user():
    raise AppError("This route is not defined! Please use /signup instead", 500)


@router.get("/{id}", dependencies=[Depends(restrict_to("admin"))])
def get_user(id: str, db: Session = Depends(get_db)):
    return factory.get_one(db, User, id)


@router.patch("/{id}", dependencies=[Depends(restrict_to("admin"))])
def update_user(id: str, payload: UserAdminUpdate, db: Session = Depends(get_db)):
    return factory.update_one(db, User, id, payload.model_dump(exclude_unset=True, exclude_none=True))


@router.delete("/{id}", status_code=204, dependencies=[Depends(restrict_to("admin"))])
def delete_user(id: str, db: Session = Depends(get_db)):
    factory.delete_one(db, User, id)
    return Response(status_code=204)
