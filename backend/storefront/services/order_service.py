"""Order Service — read access to materialized orders."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.authorize import ORDER_READ_PERMISSIONS, check_authorized
from storefront.core.domain_types import OrderId, UserId
from storefront.core.errors import ResourceNotFoundError, UnauthenticatedError
from storefront.core.outcome import Outcome
from storefront.models.order import Order
from storefront.services.account_service import load_actor


class OrderService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_orders(self, user_id: UserId | None) -> Outcome[list[Order]]:
        """The caller's own orders, newest first."""
        if user_id is None:
            return Outcome.failure(UnauthenticatedError())
        result = await self.db.execute(
            select(Order).where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id)
        )
        return Outcome.success(list(result.scalars().all()))

    async def get_order(self, actor_id: UserId | None, order_id: OrderId) -> Outcome[Order]:
        actor = await load_actor(self.db, actor_id)
        if actor is None:
            return Outcome.failure(UnauthenticatedError())
        order = await self.db.get(Order, order_id)
        if order is None:
            return Outcome.failure(ResourceNotFoundError("Order", str(order_id)))
        denied = check_authorized(
            actor, ORDER_READ_PERMISSIONS, "see this order",
            resource_owner_id=UserId(order.user_id),
        )
        if denied:
            return Outcome.failure(denied)
        return Outcome.success(order)
