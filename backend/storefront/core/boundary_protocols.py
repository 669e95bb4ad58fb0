"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Payment, mail and credential IO accessed through these Protocol types
    - Implementations provided by infrastructure/ via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from typing import Protocol

from storefront.core.domain_types import ChargeReceipt, UserId
from storefront.core.errors import InvalidSessionError


class PaymentGateway(Protocol):
    """External charge processor.

    charge() returns a receipt or raises PaymentDeclinedError /
    PaymentGatewayUnavailableError. A call that fails to return may still
    have charged the card, so callers never re-issue it.
    """
    async def charge(
        self,
        amount: int,
        currency: str,
        payment_token: str,
        idempotency_key: str,
    ) -> ChargeReceipt: ...


class Mailer(Protocol):
    """Outbound mail. Callers treat failures as non-fatal."""
    async def send(self, to: str, subject: str, html_body: str) -> None: ...


class CredentialStore(Protocol):
    """Password digests and signed session tokens."""
    async def hash(self, plaintext: str) -> str: ...
    async def verify(self, plaintext: str, digest: str) -> bool: ...
    def issue_session(self, user_id: UserId) -> str: ...
    def validate_session(self, token: str) -> UserId | InvalidSessionError: ...
