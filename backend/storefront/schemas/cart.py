"""Cart Schemas — add-to-cart payload and cart line views.

Line views validate from either a CartLine row or a CartLineView snapshot.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AddToCartRequest(BaseModel):
    item_id: UUID


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    price: int
    description: str
    image: str | None
    large_image: str | None


class CartLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quantity: int
    item: CartItemResponse


class CartResponse(BaseModel):
    lines: list[CartLineResponse]
    total: int
    currency: str
