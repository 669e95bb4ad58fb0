"""Account Routes — sign-up/in/out, password reset, current user.

Invariants:
    - Successful sign-up, sign-in and reset set the HTTP-only session cookie
    - Sign-out only clears the cookie; tokens carry no server-side state
    - request-reset answers the same way whether or not the email exists
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import (
    clear_session_cookie, get_credentials, get_current_user_id, get_mailer,
    set_session_cookie,
)
from storefront.config import Settings, get_settings
from storefront.core.boundary_protocols import CredentialStore, Mailer
from storefront.core.domain_types import UserId
from storefront.infrastructure.database import get_db
from storefront.schemas.account import (
    MessageResponse, RequestResetRequest, ResetPasswordRequest,
    SignInRequest, SignUpRequest, UserResponse,
)
from storefront.services.account_service import AccountService

router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


def get_account_service(
    db: AsyncSession = Depends(get_db),
    credentials: CredentialStore = Depends(get_credentials),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
) -> AccountService:
    return AccountService(db, credentials, settings, mailer=mailer)


@router.post(
    "/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    signed_in = (await service.sign_up(body.email, body.name, body.password)).unwrap()
    set_session_cookie(response, signed_in.token, settings)
    return signed_in.user


@router.post("/signin", response_model=UserResponse)
async def sign_in(
    body: SignInRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    signed_in = (await service.sign_in(body.email, body.password)).unwrap()
    set_session_cookie(response, signed_in.token, settings)
    return signed_in.user


@router.post("/signout", response_model=MessageResponse)
async def sign_out(response: Response, settings: Settings = Depends(get_settings)):
    clear_session_cookie(response, settings)
    return MessageResponse(message="Goodbye!")


@router.post("/request-reset", response_model=MessageResponse)
async def request_reset(
    body: RequestResetRequest,
    service: AccountService = Depends(get_account_service),
):
    message = (await service.request_password_reset(body.email)).unwrap()
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=UserResponse)
async def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    signed_in = (await service.reset_password(
        body.reset_token, body.password, body.confirm_password,
    )).unwrap()
    set_session_cookie(response, signed_in.token, settings)
    return signed_in.user


@router.get("/me", response_model=UserResponse)
async def me(
    user_id: UserId | None = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return (await service.current_user(user_id)).unwrap()
