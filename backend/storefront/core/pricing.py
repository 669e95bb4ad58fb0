"""Pricing — integer minor-unit arithmetic for carts and orders.

Invariants:
    - Totals are computed with int arithmetic only; floats are rejected
    - total == sum(quantity * price) over exactly the lines given
    - Order line copies carry the item fields as they were at snapshot time
"""

from collections.abc import Sequence

from storefront.core.domain_types import CartLineView, MinorUnits
from storefront.core.errors import DomainValidationError


def check_price(price: object) -> DomainValidationError | None:
    """Price must be a non-negative int (bool excluded)."""
    if isinstance(price, bool) or not isinstance(price, int):
        return DomainValidationError(
            f"Price must be an integer amount of minor units, got {price!r}",
            "price",
        )
    if price < 0:
        return DomainValidationError("Price cannot be negative", "price")
    return None


def line_total(line: CartLineView) -> int:
    return line.quantity * line.item.price


def compute_total(lines: Sequence[CartLineView]) -> MinorUnits | DomainValidationError:
    """Sum of line totals, or the first invalid price / quantity found."""
    total = 0
    for line in lines:
        error = check_price(line.item.price)
        if error:
            return error
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) \
                or line.quantity < 1:
            return DomainValidationError(
                f"Quantity must be a positive integer, got {line.quantity!r}",
                "quantity",
            )
        total += line_total(line)
    return MinorUnits(total)


def check_chargeable(total: int) -> DomainValidationError | None:
    """The processor only accepts positive amounts; a free cart is not charged."""
    if total <= 0:
        return DomainValidationError(
            "Cart total must be greater than zero to check out", "price",
        )
    return None


def order_line_copies(lines: Sequence[CartLineView]) -> list[dict]:
    """Denormalized order-item payloads, one per snapshotted line, in order."""
    return [
        {
            "title": line.item.title,
            "description": line.item.description,
            "price": line.item.price,
            "image": line.item.image,
            "large_image": line.item.large_image,
            "quantity": line.quantity,
        }
        for line in lines
    ]


def format_amount(amount: int, currency: str) -> str:
    """Human-readable amount for logs and emails: 4498, 'EUR' -> 'EUR 44.98'."""
    whole, cents = divmod(amount, 100)
    return f"{currency} {whole}.{cents:02d}"
