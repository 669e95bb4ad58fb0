"""Cart Routes — the signed-in user's cart."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import require_user_id
from storefront.config import Settings, get_settings
from storefront.core.domain_types import CartLineId, ItemId, UserId
from storefront.core.errors import StorefrontError
from storefront.core.pricing import compute_total
from storefront.infrastructure.database import get_db
from storefront.schemas.cart import AddToCartRequest, CartLineResponse, CartResponse
from storefront.services.cart_ledger import CartLedger

router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


def get_ledger(db: AsyncSession = Depends(get_db)) -> CartLedger:
    return CartLedger(db)


@router.get("", response_model=CartResponse)
async def read_cart(
    user_id: UserId = Depends(require_user_id),
    ledger: CartLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
):
    lines = await ledger.snapshot(user_id)
    total = compute_total(lines)
    if isinstance(total, StorefrontError):
        raise total
    return CartResponse(
        lines=[CartLineResponse.model_validate(line) for line in lines],
        total=total,
        currency=settings.payment_currency,
    )


@router.post(
    "/items", response_model=CartLineResponse, status_code=status.HTTP_201_CREATED,
)
async def add_to_cart(
    body: AddToCartRequest,
    user_id: UserId = Depends(require_user_id),
    ledger: CartLedger = Depends(get_ledger),
):
    """Add one of an item; repeated adds increment the existing line."""
    line = (await ledger.add_or_increment(user_id, ItemId(body.item_id))).unwrap()
    return CartLineResponse.model_validate(line)


@router.delete("/items/{line_id}", response_model=CartLineResponse)
async def remove_from_cart(
    line_id: UUID,
    user_id: UserId = Depends(require_user_id),
    ledger: CartLedger = Depends(get_ledger),
):
    line = (await ledger.remove(user_id, CartLineId(line_id))).unwrap()
    return CartLineResponse.model_validate(line)
