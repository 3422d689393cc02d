from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, Field

from app.schemas.common import CamelModel


class ReviewCreate(CamelModel):
    review: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    tour_id: Optional[UUID] = Field(default=None, validation_alias=AliasChoices("tour", "tourId", "tour_id"))
    user_id: Optional[UUID] = Field(default=None, validation_alias=AliasChoices("user", "userId", "user_id"))


class ReviewUpdate(CamelModel):
    review: Optional[str] = Field(default=None, min_length=1)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
