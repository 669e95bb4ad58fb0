"""Account Service — sign-up, sign-in, password reset, permission updates.

Invariants:
    - Emails are stored lower-case; sign-in never reveals whether an email exists
    - New accounts get exactly {USER}
    - reset_password checks the confirmation before touching the DB and
      never mutates the credential for an unknown or expired token
    - request_password_reset commits the token before mailing; a mail failure
      is logged and does not undo the write
    - update_permissions requires ADMIN or PERMISSIONUPDATE on the actor
"""

import logging
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import Settings
from storefront.core.authorize import (
    PERMISSION_UPDATE_PERMISSIONS, check_authorized, parse_permissions,
)
from storefront.core.boundary_protocols import CredentialStore, Mailer
from storefront.core.clock import utc_now
from storefront.core.domain_types import Actor, Permission, UserId
from storefront.core.errors import (
    AuthenticationFailedError, DomainValidationError, ErrorContext,
    ResourceNotFoundError, UnauthenticatedError,
)
from storefront.core.format_email import password_reset_email
from storefront.core.outcome import Outcome
from storefront.core.password_rules import (
    check_new_password, check_password_confirmation,
)
from storefront.core.reset_token import (
    digest_reset_token, invalid_reset_token_error, is_reset_token_live,
    reset_token_expiry,
)
from storefront.models.user import User

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 20


@dataclass(frozen=True)
class SignedIn:
    """A user together with a freshly issued session token."""
    user: User
    token: str


async def load_actor(db: AsyncSession, user_id: UserId | None) -> Actor | None:
    """Resolve a session's user id into an Actor; None if absent or deleted."""
    if user_id is None:
        return None
    user = await db.get(User, user_id)
    if user is None:
        return None
    return Actor(id=UserId(user.id), permissions=parse_permissions(user.permissions))


class AccountService:
    """Account lifecycle flows."""

    def __init__(
        self,
        db: AsyncSession,
        credentials: CredentialStore,
        settings: Settings,
        mailer: Mailer | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.credentials = credentials
        self.settings = settings
        self.mailer = mailer
        self.clock = clock

    async def sign_up(self, email: str, name: str, password: str) -> Outcome[SignedIn]:
        email = email.strip().lower()
        error = check_new_password(password)
        if error:
            return Outcome.failure(error)
        if await self._find_by_email(email) is not None:
            return Outcome.failure(_email_taken())

        user = User(
            email=email,
            name=name,
            password=await self.credentials.hash(password),
            permissions=[Permission.USER.value],
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return Outcome.failure(_email_taken())
        logger.info("User signed up", extra={"user_id": str(user.id)})
        return Outcome.success(self._signed_in(user))

    async def sign_in(self, email: str, password: str) -> Outcome[SignedIn]:
        user = await self._find_by_email(email.strip().lower())
        if user is None or not await self.credentials.verify(password, user.password):
            return Outcome.failure(AuthenticationFailedError())
        return Outcome.success(self._signed_in(user))

    async def current_user(self, user_id: UserId | None) -> Outcome[User]:
        user = await self.db.get(User, user_id) if user_id else None
        if user is None:
            return Outcome.failure(UnauthenticatedError())
        return Outcome.success(user)

    async def request_password_reset(self, email: str) -> Outcome[str]:
        user = await self._find_by_email(email.strip().lower())
        if user is None:
            logger.info("Password reset requested for unknown email")
            return Outcome.success("Thanks")

        reset_token = secrets.token_hex(RESET_TOKEN_BYTES)
        user.reset_token = digest_reset_token(reset_token)
        user.reset_token_expiry = reset_token_expiry(
            self.clock(), self.settings.reset_token_ttl_seconds,
        )
        await self.db.commit()

        await self._send_reset_mail(user, reset_token)
        return Outcome.success("Thanks")

    async def reset_password(
        self, reset_token: str, password: str, confirm_password: str,
    ) -> Outcome[SignedIn]:
        error = check_password_confirmation(password, confirm_password) \
            or check_new_password(password)
        if error:
            return Outcome.failure(error)

        result = await self.db.execute(
            select(User).where(User.reset_token == digest_reset_token(reset_token)),
        )
        user = result.scalar_one_or_none()
        if user is None or not is_reset_token_live(user.reset_token_expiry, self.clock()):
            return Outcome.failure(invalid_reset_token_error())

        user.password = await self.credentials.hash(password)
        user.reset_token = None
        user.reset_token_expiry = None
        await self.db.commit()
        logger.info("Password reset", extra={"user_id": str(user.id)})
        return Outcome.success(self._signed_in(user))

    async def update_permissions(
        self,
        actor_id: UserId | None,
        user_id: UserId,
        permissions: Iterable[Permission],
    ) -> Outcome[User]:
        actor = await load_actor(self.db, actor_id)
        if actor is None:
            return Outcome.failure(UnauthenticatedError())
        denied = check_authorized(
            actor, PERMISSION_UPDATE_PERMISSIONS, "update permissions",
        )
        if denied:
            return Outcome.failure(denied)

        target = await self.db.get(User, user_id)
        if target is None:
            return Outcome.failure(ResourceNotFoundError("User", str(user_id)))
        target.permissions = sorted({Permission(p).value for p in permissions})
        await self.db.commit()
        logger.info(
            f"Permissions set to {target.permissions}",
            extra={"user_id": str(target.id)},
        )
        return Outcome.success(target)

    # ─── helpers ────────────────────────────────────────────────

    async def _find_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    def _signed_in(self, user: User) -> SignedIn:
        return SignedIn(user=user, token=self.credentials.issue_session(UserId(user.id)))

    async def _send_reset_mail(self, user: User, reset_token: str) -> None:
        if self.mailer is None:
            logger.warning("No mailer configured; reset mail not sent")
            return
        subject, body = password_reset_email(self.settings.frontend_url, reset_token)
        try:
            await self.mailer.send(user.email, subject, body)
        except Exception as e:
            logger.error(
                f"Reset mail delivery failed: {e}",
                extra={"user_id": str(user.id)}, exc_info=True,
            )


def _email_taken() -> DomainValidationError:
    return DomainValidationError(
        "An account with that email already exists", "email",
        context=ErrorContext(),
    )
