from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AppError
from app.core.security import create_jwt, generate_reset_token, hash_password, hash_reset_token, verify_password
from app.models.common import as_utc, utcnow
from app.models.user import User
from app.schemas.user import ResetPasswordIn, SignupIn, UpdatePasswordIn
from app.services.email_service import EmailDeliveryError, send_password_reset_email, send_welcome_email
from app.services.record_query import to_document

logger = logging.getLogger("app.auth")


def normalize_email(raw: str | None) -> str:
    return str(raw or "").strip().lower()


def get_active_user_by_email(db: Session, email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return User.default_scope(db.query(User)).filter(func.lower(User.email) == normalized).first()


def set_password(user: User, plain: str, *, is_new: bool = False) -> None:
    user.password_hash = hash_password(plain)
    if not is_new:
        # One second in the past so a token issued right now stays valid.
        user.password_changed_at = utcnow() - timedelta(seconds=1)


def issue_token(user: User) -> str:
    return create_jwt(
        {"sub": str(user.id)},
        settings.JWT_SECRET,
        timedelta(days=settings.JWT_EXPIRES_IN_DAYS),
    )


def _is_secure(request: Request) -> bool:
    return request.url.scheme == "https" or request.headers.get("x-forwarded-proto") == "https"


def send_token(user: User, status_code: int, request: Request) -> JSONResponse:
    token = issue_token(user)
    response = JSONResponse(
        {"status": "success", "token": token, "data": {"user": to_document(user)}},
        status_code=status_code,
    )
    response.set_cookie(
        settings.JWT_COOKIE_NAME,
        token,
        max_age=int(settings.JWT_COOKIE_EXPIRES_IN_DAYS) * 24 * 60 * 60,
        expires=datetime.now(timezone.utc) + timedelta(days=settings.JWT_COOKIE_EXPIRES_IN_DAYS),
        httponly=True,
        secure=_is_secure(request),
    )
    return response


def logout_response() -> JSONResponse:
    response = JSONResponse({"status": "success"})
    response.set_cookie(
        settings.JWT_COOKIE_NAME,
        "loggedout",
        max_age=10,
        expires=datetime.now(timezone.utc) + timedelta(seconds=10),
        httponly=True,
    )
    return response


def signup(db: Session, payload: SignupIn, *, profile_url: str) -> User:
    if db.query(User).filter(func.lower(User.email) == payload.email).first() is not None:
        raise AppError(f"Duplicate field value: {payload.email}. Please use another value.", 400)
    user = User(name=payload.name, email=payload.email, role="user", active=True)
    set_password(user, payload.password, is_new=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    try:
        send_welcome_email(email=user.email, name=user.name, url=profile_url)
    except EmailDeliveryError as exc:
        logger.warning("welcome email to %s failed: %s", user.email, exc)
    return user


def login(db: Session, email: str | None, password: str | None) -> User:
    if not email or not password:
        raise AppError("Please provide email and password!", 400)
    user = get_active_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise AppError("Incorrect email or password", 401)
    return user


def forgot_password(db: Session, email: str, *, reset_url_prefix: str) -> None:
    user = get_active_user_by_email(db, email)
    if user is None:
        raise AppError("There is no user with that email address.", 404)

    plain, digest = generate_reset_token()
    user.password_reset_token = digest
    user.password_reset_expires = utcnow() + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES)
    db.add(user)
    db.commit()

    try:
        send_password_reset_email(email=user.email, name=user.name, url=f"{reset_url_prefix}/{plain}")
    except EmailDeliveryError as exc:
        logger.error("password reset email to %s failed: %s", user.email, exc)
        user.password_reset_token = None
        user.password_reset_expires = None
        db.add(user)
        db.commit()
        raise AppError("There was an error sending the email. Try again later!", 500)


def reset_password(db: Session, token: str, payload: ResetPasswordIn) -> User:
    user = (
        User.default_scope(db.query(User))
        .filter(User.password_reset_token == hash_reset_token(token))
        .first()
    )
    expires = as_utc(user.password_reset_expires) if user is not None else None
    if user is None or expires is None or expires <= utcnow():
        raise AppError("Token is invalid or has expired", 400)

    set_password(user, payload.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_password(db: Session, user: User, payload: UpdatePasswordIn) -> User:
    if not verify_password(payload.password_current, user.password_hash):
        raise AppError("Your current password is incorrect", 401)
    set_password(user, payload.password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
