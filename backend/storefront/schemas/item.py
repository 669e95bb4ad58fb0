"""Item Schemas — create payload and the explicit update type.

Invariants:
    - price is an int of minor units (cents), >= 0; floats are refused
    - ItemUpdate lists ONLY mutable fields; unknown keys (id, user_id) are rejected
    - title, description and price may be omitted from an update but never nulled
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


class ItemCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str = Field("", max_length=10_000)
    price: StrictInt = Field(ge=0)
    image: str | None = Field(None, max_length=500)
    large_image: str | None = Field(None, max_length=500)


class ItemUpdate(BaseModel):
    """Fields a caller may change on an item. Absent fields stay untouched."""
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=10_000)
    price: StrictInt | None = Field(None, ge=0)
    image: str | None = Field(None, max_length=500)
    large_image: str | None = Field(None, max_length=500)

    @field_validator("title", "description", "price")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    price: int
    image: str | None
    large_image: str | None
    user_id: UUID | None
