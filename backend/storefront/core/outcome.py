"""Outcome — explicit success-or-error return value for service operations.

Invariants:
    - Exactly one of value / error is meaningful; ok is True iff error is None
    - unwrap() is the only place a StorefrontError gets raised (HTTP boundary)
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from storefront.core.errors import StorefrontError

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    error: StorefrontError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: StorefrontError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
