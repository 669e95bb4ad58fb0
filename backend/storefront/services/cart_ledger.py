"""Cart Ledger — per-user cart lines, one line per (user, item).

Invariants:
    - add_or_increment is a single conditional UPDATE, falling back to an
      INSERT; a lost insert race (unique violation) becomes an increment
    - remove: NotFound if the line is missing, Forbidden if someone else owns it
    - snapshot returns frozen CartLineView values, oldest line first
    - clear deletes exactly the given ids for that user and reports how many
      rows actually went away; it never commits (runs in the caller's transaction)
"""

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.authorize import OWNER_ONLY, check_authorized
from storefront.core.domain_types import (
    Actor, CartLineId, CartLineView, ItemId, ItemSnapshot, UserId,
)
from storefront.core.errors import ResourceNotFoundError
from storefront.core.outcome import Outcome
from storefront.models.cart_line import CartLine
from storefront.models.item import Item

logger = logging.getLogger(__name__)


class CartLedger:
    """Owns the cart_lines table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_or_increment(self, user_id: UserId, item_id: ItemId) -> Outcome[CartLine]:
        if await self.db.get(Item, item_id) is None:
            return Outcome.failure(ResourceNotFoundError("Item", str(item_id)))

        if await self._increment(user_id, item_id) == 0:
            self.db.add(CartLine(user_id=user_id, item_id=item_id, quantity=1))
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.info(
                    "Concurrent add created the cart line first; incrementing",
                    extra={"user_id": str(user_id)},
                )
                await self._increment(user_id, item_id)
                await self.db.commit()
        else:
            await self.db.commit()

        return Outcome.success(await self._find(user_id, item_id))

    async def remove(self, user_id: UserId, line_id: CartLineId) -> Outcome[CartLine]:
        line = await self.db.get(CartLine, line_id)
        if line is None:
            return Outcome.failure(ResourceNotFoundError("CartLine", str(line_id)))
        denied = check_authorized(
            Actor(id=user_id, permissions=frozenset()), OWNER_ONLY,
            "remove this cart item", resource_owner_id=UserId(line.user_id),
        )
        if denied:
            return Outcome.failure(denied)
        await self.db.delete(line)
        await self.db.commit()
        return Outcome.success(line)

    async def snapshot(self, user_id: UserId) -> list[CartLineView]:
        result = await self.db.execute(
            select(CartLine, Item)
            .join(Item, CartLine.item_id == Item.id)
            .where(CartLine.user_id == user_id)
            .order_by(CartLine.created_at, CartLine.id)
            .execution_options(populate_existing=True)
        )
        return [
            CartLineView(
                id=CartLineId(line.id),
                user_id=UserId(line.user_id),
                quantity=line.quantity,
                item=ItemSnapshot(
                    id=ItemId(item.id),
                    title=item.title,
                    price=item.price,
                    description=item.description,
                    image=item.image,
                    large_image=item.large_image,
                ),
            )
            for line, item in result.all()
        ]

    async def clear(self, user_id: UserId, line_ids: Sequence[CartLineId]) -> int:
        if not line_ids:
            return 0
        result = await self.db.execute(
            delete(CartLine)
            .where(CartLine.id.in_(list(line_ids)))
            .where(CartLine.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _increment(self, user_id: UserId, item_id: ItemId) -> int:
        result = await self.db.execute(
            update(CartLine)
            .where(CartLine.user_id == user_id, CartLine.item_id == item_id)
            .values(quantity=CartLine.quantity + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _find(self, user_id: UserId, item_id: ItemId) -> CartLine:
        result = await self.db.execute(
            select(CartLine)
            .where(CartLine.user_id == user_id, CartLine.item_id == item_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
