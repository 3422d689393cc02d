import uuid
from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, Query, mapped_column
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import DateTime

def utcnow():
    return datetime.now(timezone.utc)

def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timezone-aware columns back as naive values.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

class UUIDMixin:
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class DocumentMixin:
    """Read-side behaviour shared by every collection exposed through the API.

    ``__hidden_fields__`` lists attributes that never leave the service, whatever
    projection the caller asks for. ``default_scope`` narrows every find issued
    through the generic handlers (secret tours, deactivated users).
    """

    __hidden_fields__: tuple[str, ...] = ()

    @classmethod
    def default_scope(cls, query: Query) -> Query:
        return query
