"""Credential Store — bcrypt password digests and HS256-signed session tokens.

Invariants:
    - Digests are salted bcrypt at the configured cost; plaintext is never stored
    - verify() returns False for malformed digests instead of raising
    - Session tokens carry {"userId", "iat"} and NO exp claim; validity is the
      signature alone, so a token lives as long as its cookie (365 days) and
      cannot be revoked server-side
    - Hashing runs in a worker thread (bcrypt is CPU-bound)
"""

import asyncio
import logging
from datetime import datetime, timezone
from uuid import UUID

import bcrypt
import jwt

from storefront.core.domain_types import UserId
from storefront.core.errors import InvalidSessionError

logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"


class BcryptJwtCredentialStore:
    """Implements core.boundary_protocols.CredentialStore."""

    def __init__(self, secret: str, rounds: int = 10):
        if not secret:
            raise ValueError("Session signing secret must not be empty")
        self._secret = secret
        self.rounds = rounds

    # ─── Passwords ──────────────────────────────────────────────

    async def hash(self, plaintext: str) -> str:
        return await asyncio.to_thread(self._hash_sync, plaintext)

    async def verify(self, plaintext: str, digest: str) -> bool:
        return await asyncio.to_thread(self._verify_sync, plaintext, digest)

    def _hash_sync(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("ascii")

    @staticmethod
    def _verify_sync(plaintext: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("ascii"))
        except (ValueError, UnicodeEncodeError):
            return False

    # ─── Sessions ───────────────────────────────────────────────

    def issue_session(self, user_id: UserId) -> str:
        payload = {"userId": str(user_id), "iat": datetime.now(timezone.utc)}
        return jwt.encode(payload, self._secret, algorithm=SESSION_ALGORITHM)

    def validate_session(self, token: str) -> UserId | InvalidSessionError:
        try:
            payload = jwt.decode(
                token, self._secret,
                algorithms=[SESSION_ALGORITHM],
                options={"require": ["userId"]},
            )
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected session token: {type(e).__name__}")
            return InvalidSessionError(reason=type(e).__name__)
        try:
            return UserId(UUID(str(payload["userId"])))
        except ValueError:
            return InvalidSessionError(reason="bad_subject")
