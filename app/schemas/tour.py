from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from app.schemas.common import CamelModel
from app.services.review_stats import round_rating

Difficulty = Literal["easy", "medium", "difficult"]


class GeoPoint(CamelModel):
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(min_length=2, max_length=2)  # [lng, lat]
    address: Optional[str] = None
    description: Optional[str] = None


class TourLocation(GeoPoint):
    day: Optional[int] = None


class _TourFields(CamelModel):
    @field_validator("ratings_average", check_fields=False)
    @classmethod
    def _round_rating(cls, value):
        return None if value is None else round_rating(value)

    @model_validator(mode="after")
    def _discount_below_price(self):
        price = getattr(self, "price", None)
        discount = getattr(self, "price_discount", None)
        if price is not None and discount is not None and discount >= price:
            raise ValueError(f"Discount price ({discount}) should be below the regular price")
        return self


class TourCreate(_TourFields):
    name: str = Field(min_length=10, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: Difficulty
    ratings_average: Optional[float] = Field(default=None, ge=1, le=5)
    ratings_quantity: Optional[int] = Field(default=None, ge=0)
    price: float = Field(gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: str = Field(min_length=1)
    description: Optional[str] = None
    image_cover: str = Field(min_length=1)
    images: list[str] = []
    start_dates: list[datetime] = []
    secret_tour: bool = False
    start_location: Optional[GeoPoint] = None
    locations: list[TourLocation] = []
    guides: list[UUID] = []


class TourUpdate(_TourFields):
    name: Optional[str] = Field(default=None, min_length=10, max_length=40)
    duration: Optional[int] = Field(default=None, gt=0)
    max_group_size: Optional[int] = Field(default=None, gt=0)
    difficulty: Optional[Difficulty] = None
    ratings_average: Optional[float] = Field(default=None, ge=1, le=5)
    ratings_quantity: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: Optional[str] = None
    description: Optional[str] = None
    image_cover: Optional[str] = None
    images: Optional[list[str]] = None
    start_dates: Optional[list[datetime]] = None
    secret_tour: Optional[bool] = None
    start_location: Optional[GeoPoint] = None
    locations: Optional[list[TourLocation]] = None
    guides: Optional[list[UUID]] = None
