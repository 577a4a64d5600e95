"""
Account endpoints: register, verify email, login, logout, current account.
"""

import time

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.core.clock import Clock, get_clock
from tablebook.core.config import Settings, get_settings
from tablebook.core.exceptions import AuthError, AuthErrorKind
from tablebook.core.logging import get_logger
from tablebook.core.security import get_current_account_id, get_token_claims
from tablebook.db.session import get_db
from tablebook.infrastructure import account_store
from tablebook.infrastructure.redis_client import revoke_token
from tablebook.schemas.account import (
    AccountCreate,
    AccountLogin,
    AccountResponse,
    MessageResponse,
    RegistrationResponse,
    Token,
)
from tablebook.services.auth_service import authenticate_account, register_account, verify_email
from tablebook.services.interfaces.mailer import Mailer
from tablebook.services.mailer_factory import get_mailer

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register(
    account_data: AccountCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """Register an account and email a verification link."""
    result = await register_account(db, account_data, clock.now(), settings, mailer)
    message = (
        "Check your inbox to confirm your email"
        if result.verification_email_sent
        else "Account created but the confirmation email could not be sent, please register again later"
    )
    return RegistrationResponse(
        account=AccountResponse.model_validate(result.account),
        verification_email_sent=result.verification_email_sent,
        message=message,
    )


@router.get("/verify", response_model=AccountResponse)
async def verify(
    email: str = Query(..., max_length=255),
    token: str = Query(..., max_length=256),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Confirm an email address with the token from the verification link."""
    return await verify_email(db, email, token, clock.now())


@router.post("/login", response_model=Token)
async def login(
    login_data: AccountLogin,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Authenticate a verified account and receive a JWT access token."""
    token = await authenticate_account(db, login_data, settings)
    return Token(access_token=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, claims: dict = Depends(get_token_claims)):
    """Revoke the presented access token for the rest of its lifetime."""
    ttl_seconds = int(claims["exp"]) - int(time.time())
    revoked = await revoke_token(getattr(request.app.state, "redis", None), claims["jti"], ttl_seconds)
    logger.info("account_logged_out", account_id=claims["sub"], revoked=revoked)
    if not revoked:
        return MessageResponse(message="Logged out; this token stays valid until it expires")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=AccountResponse)
async def me(
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated account."""
    account = await account_store.find_account_by_id(db, account_id)
    if account is None:
        raise AuthError(AuthErrorKind.INVALID_TOKEN, "Not authenticated", code="NOT_AUTHENTICATED")
    return account
