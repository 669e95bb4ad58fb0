"""Order Schemas — checkout request and immutable order views."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    """token is the processor's single-use payment source (e.g. Stripe tok_...)."""
    token: str = Field(min_length=1, max_length=255)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    description: str
    price: int
    quantity: int
    image: str | None
    large_image: str | None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    total: int
    charge: str
    created_at: datetime
    items: list[OrderItemResponse]
