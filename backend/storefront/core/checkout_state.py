"""Checkout State — per-attempt record of the checkout state machine.

Invariants:
    - Steps run strictly in CheckoutStep order; none is skipped or repeated
    - line_ids is frozen at SNAPSHOT and is the only set MATERIALIZE may clear
    - amount is set once at PRICE and never recomputed
"""

from dataclasses import dataclass, field

from storefront.core.domain_types import (
    AttemptId, CartLineId, CartLineView, ChargeReceipt, CheckoutStep, UserId,
)

_ORDER = list(CheckoutStep)


@dataclass
class CheckoutState:
    """Mutable progress of one checkout attempt. Pure, no IO."""

    user_id: UserId | None
    attempt_id: AttemptId | None = None
    step: CheckoutStep = CheckoutStep.AUTH_CHECK
    lines: tuple[CartLineView, ...] = ()
    amount: int | None = None
    receipt: ChargeReceipt | None = None
    history: list[CheckoutStep] = field(
        default_factory=lambda: [CheckoutStep.AUTH_CHECK],
    )

    @property
    def line_ids(self) -> list[CartLineId]:
        return [line.id for line in self.lines]

    def advance(self, step: CheckoutStep) -> None:
        """Move to the next step. Anything but the immediate successor is a bug."""
        expected = _ORDER[_ORDER.index(self.step) + 1] \
            if self.step != CheckoutStep.DONE else None
        if step != expected:
            raise ValueError(
                f"Illegal checkout transition {self.step.value} -> {step.value}",
            )
        self.step = step
        self.history.append(step)

    def capture(self, lines: list[CartLineView]) -> None:
        if self.step != CheckoutStep.SNAPSHOT or self.lines:
            raise ValueError("Cart lines can only be captured once, at snapshot")
        self.lines = tuple(lines)

    def log_extra(self) -> dict:
        """Fields for logger.*(extra=...)."""
        return {
            "user_id": str(self.user_id) if self.user_id else None,
            "attempt_id": str(self.attempt_id) if self.attempt_id else None,
            "checkout_step": self.step.value,
            "amount": self.amount,
            "charge_id": self.receipt.charge_id if self.receipt else None,
        }
