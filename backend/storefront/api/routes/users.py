"""User Administration Routes — permission management."""

from uuid import UUID

from fastapi import APIRouter, Depends

from storefront.api.dependencies import get_current_user_id
from storefront.api.routes.accounts import get_account_service
from storefront.core.domain_types import UserId
from storefront.schemas.account import UpdatePermissionsRequest, UserResponse
from storefront.services.account_service import AccountService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.put("/{user_id}/permissions", response_model=UserResponse)
async def update_permissions(
    user_id: UUID,
    body: UpdatePermissionsRequest,
    actor_id: UserId | None = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """Replace a user's permission set. Requires ADMIN or PERMISSIONUPDATE."""
    outcome = await service.update_permissions(
        actor_id, UserId(user_id), body.permissions,
    )
    return outcome.unwrap()
