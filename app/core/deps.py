from uuid import UUID

from fastapi import Cookie, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AppError
from app.core.security import decode_jwt
from app.db.session import get_db
from app.models.common import as_utc
from app.models.user import User

bearer = HTTPBearer(auto_error=False)

def _token_from_request(creds: HTTPAuthorizationCredentials | None, cookie_token: str | None) -> str | None:
    if creds and creds.credentials:
        return creds.credentials
    if cookie_token and cookie_token != "loggedout":
        return cookie_token
    return None

def _decode_or_401(token: str) -> dict:
    try:
        return decode_jwt(token, settings.JWT_SECRET)
    except ExpiredSignatureError:
        raise AppError("Your token has expired! Please log in again.", 401)
    except JWTError:
        raise AppError("Invalid token. Please log in again!", 401)

def changed_password_after(user: User, issued_at: int) -> bool:
    changed = as_utc(user.password_changed_at)
    if changed is None:
        return False
    return int(issued_at) < int(changed.timestamp())

def _user_for_claims(db: Session, claims: dict) -> User | None:
    try:
        uid = UUID(str(claims.get("sub") or ""))
    except ValueError:
        return None
    return User.default_scope(db.query(User)).filter(User.id == uid).first()

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    jwt_cookie: str | None = Cookie(default=None, alias=settings.JWT_COOKIE_NAME),
    db: Session = Depends(get_db),
) -> User:
    token = _token_from_request(creds, jwt_cookie)
    if not token:
        raise AppError("You are not logged in! Please log in to get access.", 401)
    claims = _decode_or_401(token)
    user = _user_for_claims(db, claims)
    if user is None:
        raise AppError("The user belonging to this token no longer exists.", 401)
    if changed_password_after(user, int(claims.get("iat") or 0)):
        raise AppError("User recently changed password! Please log in again.", 401)
    return user

def restrict_to(*roles: str):
    def _inner(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise AppError("You do not have permission to perform this action", 403)
        return user
    return _inner
