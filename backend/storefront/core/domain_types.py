"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, ItemId, CartLineId, OrderId, AttemptId wrap UUIDs
    - Money is always an int in minor currency units (cents), never a float
    - Snapshot values (ItemSnapshot, CartLineView, ChargeReceipt) are frozen

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to the DB without custom encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
ItemId = NewType("ItemId", UUID)
CartLineId = NewType("CartLineId", UUID)
OrderId = NewType("OrderId", UUID)
AttemptId = NewType("AttemptId", UUID)


# ─── Value Types ─────────────────────────────────────────────────

MinorUnits = NewType("MinorUnits", int)   # cents; 1999 == 19.99


# ─── Enums ───────────────────────────────────────────────────────

class Permission(str, Enum):
    """Permission tags held by a user. A user holds an unordered set of these."""
    ADMIN = "ADMIN"
    USER = "USER"
    ITEMCREATE = "ITEMCREATE"
    ITEMUPDATE = "ITEMUPDATE"
    ITEMDELETE = "ITEMDELETE"
    PERMISSIONUPDATE = "PERMISSIONUPDATE"


class CheckoutStep(str, Enum):
    """Checkout state machine steps, in the only order they may run."""
    AUTH_CHECK = "auth_check"
    SNAPSHOT = "snapshot"
    PRICE = "price"
    CHARGE = "charge"
    MATERIALIZE = "materialize"
    DONE = "done"


class AttemptStatus(str, Enum):
    """Lifecycle of a row in checkout_attempts."""
    PENDING = "pending"
    COMPLETED = "completed"
    DECLINED = "declined"
    UNAVAILABLE = "unavailable"
    AMBIGUOUS = "ambiguous"
    CONFLICT = "conflict"
    STALE = "stale"


# ─── Actors & Snapshots ──────────────────────────────────────────

@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as the authorization guard sees it."""
    id: UserId
    permissions: frozenset[Permission]


@dataclass(frozen=True)
class ItemSnapshot:
    """Item fields copied at read time; becomes an order line on checkout."""
    id: ItemId
    title: str
    price: int
    description: str = ""
    image: str | None = None
    large_image: str | None = None


@dataclass(frozen=True)
class CartLineView:
    """One cart line joined with its item, as captured by a snapshot."""
    id: CartLineId
    user_id: UserId
    quantity: int
    item: ItemSnapshot


@dataclass(frozen=True)
class ChargeReceipt:
    """Payment processor confirmation of a successful charge."""
    charge_id: str
    amount: int
