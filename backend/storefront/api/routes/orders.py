"""Order Routes — checkout and order reads.

Invariants:
    - POST /api/v1/checkout runs exactly one checkout attempt; never retried here
    - Orders are read-only over HTTP
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_user_id, get_payment_gateway
from storefront.config import Settings, get_settings
from storefront.core.boundary_protocols import PaymentGateway
from storefront.core.domain_types import OrderId, UserId
from storefront.infrastructure.database import get_db
from storefront.schemas.order import CheckoutRequest, OrderResponse
from storefront.services.checkout_orchestrator import CheckoutOrchestrator
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/v1", tags=["orders"])


@router.post(
    "/checkout", response_model=OrderResponse, status_code=status.HTTP_201_CREATED,
)
async def checkout(
    body: CheckoutRequest,
    user_id: UserId | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    """Charge the cart and turn it into an order."""
    orchestrator = CheckoutOrchestrator(db, gateway, settings)
    return (await orchestrator.checkout(user_id, body.token)).unwrap()


@router.get("/orders", response_model=list[OrderResponse])
async def list_orders(
    user_id: UserId | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return (await OrderService(db).list_orders(user_id)).unwrap()


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user_id: UserId | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return (await OrderService(db).get_order(user_id, OrderId(order_id))).unwrap()
