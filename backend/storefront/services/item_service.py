"""Item Service — catalog item create, update, delete and reads.

Invariants:
    - Creation requires a signed-in actor, who becomes the owner
    - Update: owner, ADMIN or ITEMUPDATE; delete: owner, ADMIN or ITEMDELETE
    - Updates apply only the fields present on ItemUpdate; id and owner never change
    - Orders are unaffected by item changes (they hold copies)
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.authorize import (
    ITEM_DELETE_PERMISSIONS, ITEM_UPDATE_PERMISSIONS, check_authorized,
)
from storefront.core.domain_types import ItemId, UserId
from storefront.core.errors import ResourceNotFoundError, UnauthenticatedError
from storefront.core.outcome import Outcome
from storefront.core.pricing import check_price
from storefront.models.item import Item
from storefront.schemas.item import ItemCreate, ItemUpdate
from storefront.services.account_service import load_actor

logger = logging.getLogger(__name__)


class ItemService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_items(self, skip: int = 0, limit: int = 50) -> list[Item]:
        result = await self.db.execute(
            select(Item).order_by(Item.created_at.desc(), Item.id)
            .offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_item(self, item_id: ItemId) -> Outcome[Item]:
        item = await self.db.get(Item, item_id)
        if item is None:
            return Outcome.failure(ResourceNotFoundError("Item", str(item_id)))
        return Outcome.success(item)

    async def create_item(self, actor_id: UserId | None, data: ItemCreate) -> Outcome[Item]:
        actor = await load_actor(self.db, actor_id)
        if actor is None:
            return Outcome.failure(UnauthenticatedError())
        error = check_price(data.price)
        if error:
            return Outcome.failure(error)

        item = Item(**data.model_dump(), user_id=actor.id)
        self.db.add(item)
        await self.db.commit()
        logger.info(f"Item created: {item.id}", extra={"user_id": str(actor.id)})
        return Outcome.success(item)

    async def update_item(
        self, actor_id: UserId | None, item_id: ItemId, data: ItemUpdate,
    ) -> Outcome[Item]:
        found = await self._authorized_item(
            actor_id, item_id, ITEM_UPDATE_PERMISSIONS, "update this item",
        )
        if not found.ok:
            return found
        changes = data.changes()
        if "price" in changes:
            error = check_price(changes["price"])
            if error:
                return Outcome.failure(error)

        item = found.value
        for name, value in changes.items():
            setattr(item, name, value)
        await self.db.commit()
        return Outcome.success(item)

    async def delete_item(self, actor_id: UserId | None, item_id: ItemId) -> Outcome[Item]:
        found = await self._authorized_item(
            actor_id, item_id, ITEM_DELETE_PERMISSIONS, "delete this item",
        )
        if not found.ok:
            return found
        await self.db.delete(found.value)
        await self.db.commit()
        logger.info(f"Item deleted: {item_id}", extra={"user_id": str(actor_id)})
        return Outcome.success(found.value)

    async def _authorized_item(self, actor_id, item_id, required, action) -> Outcome[Item]:
        actor = await load_actor(self.db, actor_id)
        if actor is None:
            return Outcome.failure(UnauthenticatedError())
        item = await self.db.get(Item, item_id)
        if item is None:
            return Outcome.failure(ResourceNotFoundError("Item", str(item_id)))
        owner = UserId(item.user_id) if item.user_id else None
        denied = check_authorized(actor, required, action, resource_owner_id=owner)
        if denied:
            return Outcome.failure(denied)
        return Outcome.success(item)
