from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, Query, mapped_column
from app.db.session import Base
from app.models.common import DocumentMixin, TimestampMixin, UUIDMixin

ROLES = ("user", "guide", "lead-guide", "admin")

class User(Base, UUIDMixin, TimestampMixin, DocumentMixin):
    __tablename__ = "users"
    __hidden_fields__ = ("password_hash", "password_reset_token", "password_reset_expires", "active")

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    photo: Mapped[str] = mapped_column(String(255), nullable=False, default="default.jpg")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")  # user|guide|lead-guide|admin
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @classmethod
    def default_scope(cls, query: Query) -> Query:
        return query.filter(cls.active.is_(True))
