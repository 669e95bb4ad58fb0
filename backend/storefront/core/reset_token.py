"""Password Reset Tokens — digesting and absolute expiry.

Invariants:
    - Expiry is stored as an absolute timestamp: issued_at + ttl
    - A token is live iff now <= expiry (one canonical comparison)
    - Only the SHA-256 digest of a token is ever persisted
"""

import hashlib
from datetime import datetime, timedelta

from storefront.core.clock import as_utc
from storefront.core.errors import DomainValidationError


def digest_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def reset_token_expiry(issued_at: datetime, ttl_seconds: int) -> datetime:
    return issued_at + timedelta(seconds=ttl_seconds)


def is_reset_token_live(expiry: datetime | None, now: datetime) -> bool:
    if expiry is None:
        return False
    return as_utc(now) <= as_utc(expiry)


def invalid_reset_token_error() -> DomainValidationError:
    return DomainValidationError(
        "This token is either invalid or expired", "reset_token",
    )
