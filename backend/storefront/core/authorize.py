"""Authorization Guard — ownership and permission predicates.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Allow iff actor owns the resource (when an owner is supplied)
      OR actor holds at least one of the required permissions
    - An empty required set grants nothing by itself (owner-only checks)
"""

from collections.abc import Iterable

from storefront.core.domain_types import Actor, Permission, UserId
from storefront.core.errors import ForbiddenError, ErrorContext


# ─── Permission sets used by the services ────────────────────────

ITEM_UPDATE_PERMISSIONS = frozenset({Permission.ADMIN, Permission.ITEMUPDATE})
ITEM_DELETE_PERMISSIONS = frozenset({Permission.ADMIN, Permission.ITEMDELETE})
PERMISSION_UPDATE_PERMISSIONS = frozenset(
    {Permission.ADMIN, Permission.PERMISSIONUPDATE},
)
ORDER_READ_PERMISSIONS = frozenset({Permission.ADMIN})
OWNER_ONLY: frozenset[Permission] = frozenset()


def authorize(
    actor: Actor,
    required_any: Iterable[Permission],
    resource_owner_id: UserId | None = None,
) -> bool:
    """True when the actor may act on the resource."""
    if resource_owner_id is not None and actor.id == resource_owner_id:
        return True
    return not actor.permissions.isdisjoint(required_any)


def check_authorized(
    actor: Actor,
    required_any: Iterable[Permission],
    action: str,
    resource_owner_id: UserId | None = None,
) -> ForbiddenError | None:
    """Return ForbiddenError on denial, None on allow."""
    required = frozenset(required_any)
    if authorize(actor, required, resource_owner_id):
        return None
    return ForbiddenError(
        action,
        required=sorted(p.value for p in required),
        context=ErrorContext(user_id=str(actor.id)),
    )


def parse_permissions(raw: Iterable[str]) -> frozenset[Permission]:
    """Stored tags -> Permission set. Unknown tags are dropped."""
    known = {p.value for p in Permission}
    return frozenset(Permission(tag) for tag in raw if tag in known)
