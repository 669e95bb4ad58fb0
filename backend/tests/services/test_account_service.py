"""Integration Tests: AccountService — sign-up/in, password reset, permissions.

Invariants:
    - Unknown email and wrong password are indistinguishable on sign-in
    - Reset tokens are single-use, expire at issue time + TTL, stored as digests
    - A confirmation mismatch never touches the stored credential
    - Mail failures do not undo the reset token write
"""

import re
from datetime import timedelta
from uuid import uuid4

import pytest

from storefront.core.clock import utc_now
from storefront.core.domain_types import Permission, UserId
from storefront.core.errors import (
    AuthenticationFailedError, DomainValidationError, ForbiddenError,
    ResourceNotFoundError, UnauthenticatedError,
)
from storefront.core.reset_token import digest_reset_token
from storefront.services.account_service import AccountService, load_actor

TEST_PASSWORD = "correct horse"  # what make_user hashes


class _BrokenMailer:
    async def send(self, to, subject, html_body):
        raise ConnectionRefusedError("smtp down")


@pytest.fixture
def service(test_db, credentials, settings, mailer):
    return AccountService(test_db, credentials, settings, mailer=mailer)


def _token_from(mail: dict) -> str:
    return re.search(r"resetToken=([0-9a-f]+)", mail["html_body"]).group(1)


# -- Sign-up / sign-in ---------------------------------------------------------

async def test_sign_up_lowercases_email_and_grants_user(service, credentials):
    signed_in = (await service.sign_up("New@Example.COM", "New", "pw-123")).unwrap()

    assert signed_in.user.email == "new@example.com"
    assert signed_in.user.permissions == ["USER"]
    assert signed_in.user.password != "pw-123"
    assert credentials.validate_session(signed_in.token) == signed_in.user.id


async def test_sign_up_duplicate_email_is_validation_error(service, make_user):
    await make_user("taken@example.com")
    outcome = await service.sign_up("TAKEN@example.com", "Dup", "pw")
    assert isinstance(outcome.error, DomainValidationError)
    assert outcome.error.field == "email"


async def test_sign_in_success(service, make_user):
    user = await make_user("me@example.com")
    signed_in = (await service.sign_in("ME@example.com", TEST_PASSWORD)).unwrap()
    assert signed_in.user.id == user.id


async def test_sign_in_wrong_password_and_unknown_email_look_the_same(service, make_user):
    await make_user("me@example.com")
    wrong = await service.sign_in("me@example.com", "nope")
    unknown = await service.sign_in("ghost@example.com", TEST_PASSWORD)
    assert isinstance(wrong.error, AuthenticationFailedError)
    assert isinstance(unknown.error, AuthenticationFailedError)
    assert wrong.error.message == unknown.error.message


async def test_current_user(service, make_user):
    user = await make_user()
    assert (await service.current_user(UserId(user.id))).unwrap().id == user.id
    assert isinstance((await service.current_user(None)).error, UnauthenticatedError)


# -- Password reset ------------------------------------------------------------

async def test_request_reset_stores_digest_and_mails_link(service, mailer, make_user, test_db):
    user = await make_user("me@example.com")

    assert (await service.request_password_reset("me@example.com")).unwrap() == "Thanks"

    [mail] = mailer.outbox
    assert mail["to"] == "me@example.com"
    assert "http://shop.test/reset?resetToken=" in mail["html_body"]
    token = _token_from(mail)
    await test_db.refresh(user)
    assert user.reset_token == digest_reset_token(token)
    assert user.reset_token != token
    assert user.reset_token_expiry is not None


async def test_request_reset_unknown_email_is_quiet(service, mailer):
    assert (await service.request_password_reset("ghost@example.com")).unwrap() == "Thanks"
    assert mailer.outbox == []


async def test_mail_failure_keeps_token(test_db, credentials, settings, make_user):
    user = await make_user("me@example.com")
    service = AccountService(test_db, credentials, settings, mailer=_BrokenMailer())

    assert (await service.request_password_reset("me@example.com")).ok
    await test_db.refresh(user)
    assert user.reset_token is not None


async def test_reset_password_happy_path(service, mailer, make_user, credentials, test_db):
    user = await make_user("me@example.com")
    await service.request_password_reset("me@example.com")
    token = _token_from(mailer.outbox[0])

    signed_in = (await service.reset_password(token, "new-pass", "new-pass")).unwrap()

    assert signed_in.user.id == user.id
    assert credentials.validate_session(signed_in.token) == user.id
    assert (await service.sign_in("me@example.com", "new-pass")).ok
    assert not (await service.sign_in("me@example.com", TEST_PASSWORD)).ok
    await test_db.refresh(user)
    assert user.reset_token is None
    assert user.reset_token_expiry is None


async def test_reset_token_is_single_use(service, mailer, make_user):
    await make_user("me@example.com")
    await service.request_password_reset("me@example.com")
    token = _token_from(mailer.outbox[0])

    assert (await service.reset_password(token, "first", "first")).ok
    again = await service.reset_password(token, "second", "second")
    assert isinstance(again.error, DomainValidationError)


async def test_reset_mismatch_leaves_credential(service, mailer, make_user, test_db):
    user = await make_user("me@example.com")
    await service.request_password_reset("me@example.com")
    token = _token_from(mailer.outbox[0])
    digest_before = user.password

    outcome = await service.reset_password(token, "one", "two")

    assert outcome.error.message == "Your passwords don't match"
    await test_db.refresh(user)
    assert user.password == digest_before
    assert user.reset_token == digest_reset_token(token)


async def test_expired_token_rejected(test_db, credentials, settings, mailer, make_user):
    user = await make_user("me@example.com")
    issued_at = utc_now()
    issuing = AccountService(test_db, credentials, settings, mailer, clock=lambda: issued_at)
    await issuing.request_password_reset("me@example.com")
    token = _token_from(mailer.outbox[0])
    digest_before = user.password

    late = AccountService(
        test_db, credentials, settings, mailer,
        clock=lambda: issued_at + timedelta(seconds=settings.reset_token_ttl_seconds + 1),
    )
    outcome = await late.reset_password(token, "new", "new")

    assert outcome.error.message == "This token is either invalid or expired"
    await test_db.refresh(user)
    assert user.password == digest_before


async def test_token_valid_at_exact_expiry(test_db, credentials, settings, mailer, make_user):
    await make_user("me@example.com")
    issued_at = utc_now()
    await AccountService(
        test_db, credentials, settings, mailer, clock=lambda: issued_at,
    ).request_password_reset("me@example.com")
    token = _token_from(mailer.outbox[0])

    at_expiry = AccountService(
        test_db, credentials, settings, mailer,
        clock=lambda: issued_at + timedelta(seconds=settings.reset_token_ttl_seconds),
    )
    assert (await at_expiry.reset_password(token, "new", "new")).ok


async def test_unknown_reset_token_rejected(service):
    outcome = await service.reset_password("deadbeef", "new", "new")
    assert isinstance(outcome.error, DomainValidationError)


# -- Permissions ---------------------------------------------------------------

async def test_admin_replaces_permissions(service, make_user):
    admin = await make_user("admin@example.com", Permission.ADMIN)
    target = await make_user("target@example.com")

    updated = (await service.update_permissions(
        UserId(admin.id), UserId(target.id),
        [Permission.ITEMCREATE, Permission.ITEMDELETE, Permission.ITEMCREATE],
    )).unwrap()

    assert updated.permissions == ["ITEMCREATE", "ITEMDELETE"]


async def test_permission_update_permission_suffices(service, make_user):
    manager = await make_user("mgr@example.com", Permission.PERMISSIONUPDATE)
    target = await make_user("target@example.com")
    outcome = await service.update_permissions(
        UserId(manager.id), UserId(target.id), [Permission.ADMIN],
    )
    assert outcome.ok


async def test_plain_user_cannot_update_permissions(service, make_user, test_db):
    user = await make_user("user@example.com", Permission.USER, Permission.ITEMCREATE)
    target = await make_user("target@example.com")

    outcome = await service.update_permissions(
        UserId(user.id), UserId(target.id), [Permission.ADMIN],
    )

    assert isinstance(outcome.error, ForbiddenError)
    await test_db.refresh(target)
    assert target.permissions == ["USER"]


async def test_update_permissions_requires_session(service, make_user):
    target = await make_user("target@example.com")
    outcome = await service.update_permissions(None, UserId(target.id), [Permission.ADMIN])
    assert isinstance(outcome.error, UnauthenticatedError)


async def test_update_permissions_unknown_target(service, make_user):
    admin = await make_user("admin@example.com", Permission.ADMIN)
    outcome = await service.update_permissions(
        UserId(admin.id), UserId(uuid4()), [Permission.USER],
    )
    assert isinstance(outcome.error, ResourceNotFoundError)


async def test_load_actor(test_db, make_user):
    user = await make_user("a@example.com", Permission.ADMIN, Permission.USER)
    actor = await load_actor(test_db, UserId(user.id))
    assert actor.permissions == frozenset({Permission.ADMIN, Permission.USER})
    assert await load_actor(test_db, UserId(uuid4())) is None
    assert await load_actor(test_db, None) is None
