"""API Dependencies — wiring of settings, collaborators and the session cookie.

Invariants:
    - The session token is read from the cookie first, then an
      "Authorization: Bearer" header; absent token -> anonymous (None)
    - A present but invalid token is an InvalidSessionError, never anonymous
    - Gateways and mailers are built once per (provider, credentials) pair
"""

from functools import lru_cache

from fastapi import Depends, Request, Response

from storefront.config import Settings, get_settings
from storefront.core.boundary_protocols import CredentialStore, Mailer, PaymentGateway
from storefront.core.domain_types import UserId
from storefront.core.errors import InvalidSessionError, UnauthenticatedError
from storefront.infrastructure.credentials import BcryptJwtCredentialStore
from storefront.infrastructure.mailer import LogMailer, SmtpMailer
from storefront.infrastructure.payment_gateway import (
    FakePaymentGateway, StripePaymentGateway,
)


@lru_cache
def _credential_store(secret: str, rounds: int) -> BcryptJwtCredentialStore:
    return BcryptJwtCredentialStore(secret, rounds=rounds)


@lru_cache
def _payment_gateway(provider: str, api_key: str) -> PaymentGateway:
    if provider == "fake":
        return FakePaymentGateway()
    return StripePaymentGateway(api_key)


_log_mailer = LogMailer()


@lru_cache
def _smtp_mailer(
    host: str, port: int, sender: str, username: str | None,
    password: str | None, use_tls: bool, timeout_seconds: int,
) -> SmtpMailer:
    return SmtpMailer(
        host=host, port=port, sender=sender, username=username,
        password=password, use_tls=use_tls, timeout_seconds=timeout_seconds,
    )


def get_credentials(settings: Settings = Depends(get_settings)) -> CredentialStore:
    return _credential_store(settings.app_secret, settings.bcrypt_rounds)


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    return _payment_gateway(settings.payment_provider, settings.stripe_secret_key)


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    if settings.mail_provider == "log":
        return _log_mailer
    return _smtp_mailer(
        settings.smtp_host, settings.smtp_port, settings.mail_from,
        settings.smtp_username, settings.smtp_password,
        settings.smtp_use_tls, settings.smtp_timeout_seconds,
    )


def read_session_token(request: Request, cookie_name: str) -> str | None:
    token = request.cookies.get(cookie_name)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_current_user_id(
    request: Request,
    settings: Settings = Depends(get_settings),
    credentials: CredentialStore = Depends(get_credentials),
) -> UserId | None:
    token = read_session_token(request, settings.session_cookie_name)
    if token is None:
        return None
    result = credentials.validate_session(token)
    if isinstance(result, InvalidSessionError):
        raise result
    return result


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def require_user_id(
    user_id: UserId | None = Depends(get_current_user_id),
) -> UserId:
    if user_id is None:
        raise UnauthenticatedError()
    return user_id
