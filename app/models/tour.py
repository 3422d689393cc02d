from sqlalchemy import Boolean, Float, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import Mapped, Query, mapped_column
from app.db.session import Base
from app.models.common import DocumentMixin, TimestampMixin, UUIDMixin

DIFFICULTIES = ("easy", "medium", "difficult")
DEFAULT_RATINGS_AVERAGE = 4.5

class Tour(Base, UUIDMixin, TimestampMixin, DocumentMixin):
    __tablename__ = "tours"
    name: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    slug: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)  # easy|medium|difficult
    ratings_average: Mapped[float] = mapped_column(Float, nullable=False, default=DEFAULT_RATINGS_AVERAGE)
    ratings_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, index=True)
    price_discount: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    summary: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    start_dates: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    secret_tour: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # {"type": "Point", "coordinates": [lng, lat], "address": ..., "description": ...}
    start_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    locations: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    guides: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @classmethod
    def default_scope(cls, query: Query) -> Query:
        return query.filter(cls.secret_tour.is_(False))

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7
