from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, Field

from app.schemas.common import CamelModel


class BookingCreate(CamelModel):
    tour_id: UUID = Field(validation_alias=AliasChoices("tour", "tourId", "tour_id"))
    user_id: UUID = Field(validation_alias=AliasChoices("user", "userId", "user_id"))
    price: float = Field(gt=0)
    paid: bool = True


class BookingUpdate(CamelModel):
    price: Optional[float] = Field(default=None, gt=0)
    paid: Optional[bool] = None
