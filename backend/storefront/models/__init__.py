"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Money columns are Integer minor units

Design Decisions:
    - One file per entity
    - All models imported here so string-based relationship() references
      resolve before any query runs
"""

from storefront.models.user import User  # noqa: F401
from storefront.models.item import Item  # noqa: F401
from storefront.models.cart_line import CartLine  # noqa: F401
from storefront.models.order import Order, OrderItem  # noqa: F401
from storefront.models.checkout_attempt import CheckoutAttempt  # noqa: F401
