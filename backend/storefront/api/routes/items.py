"""Item Routes — catalog reads and owner/permission-guarded mutations."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_user_id
from storefront.core.domain_types import ItemId, UserId
from storefront.infrastructure.database import get_db
from storefront.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from storefront.services.item_service import ItemService

router = APIRouter(prefix="/api/v1/items", tags=["items"])


def get_item_service(db: AsyncSession = Depends(get_db)) -> ItemService:
    return ItemService(db)


@router.get("", response_model=list[ItemResponse])
async def list_items(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    service: ItemService = Depends(get_item_service),
):
    return await service.list_items(skip=skip, limit=limit)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(item_id: UUID, service: ItemService = Depends(get_item_service)):
    return (await service.get_item(ItemId(item_id))).unwrap()


@router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    body: ItemCreate,
    actor_id: UserId | None = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    return (await service.create_item(actor_id, body)).unwrap()


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: UUID,
    body: ItemUpdate,
    actor_id: UserId | None = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    return (await service.update_item(actor_id, ItemId(item_id), body)).unwrap()


@router.delete("/{item_id}", response_model=ItemResponse)
async def delete_item(
    item_id: UUID,
    actor_id: UserId | None = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    return (await service.delete_item(actor_id, ItemId(item_id))).unwrap()
