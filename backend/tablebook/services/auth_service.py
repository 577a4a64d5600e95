"""
Account service: registration with email verification, and login.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.core.config import Settings
from tablebook.core.exceptions import (
    AuthError,
    AuthErrorKind,
    EmailAlreadyRegisteredError,
    MailError,
    VerificationError,
    VerificationErrorKind,
)
from tablebook.core.logging import get_logger
from tablebook.core.metrics import mail_failures, record_login, record_registration, record_verification
from tablebook.core.security import create_access_token, hash_password, verify_password
from tablebook.infrastructure import account_store
from tablebook.models.account import Account
from tablebook.schemas.account import AccountCreate, AccountLogin
from tablebook.services.interfaces.mailer import Mailer
from tablebook.services.mail_service import build_verification_link, render_verification_email

logger = get_logger(__name__)


@dataclass
class RegistrationResult:
    account: Account
    verification_email_sent: bool


def generate_verification_token() -> str:
    return secrets.token_urlsafe(32)


def hash_verification_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def register_account(
    db: AsyncSession,
    account_data: AccountCreate,
    now: datetime,
    settings: Settings,
    mailer: Mailer,
) -> RegistrationResult:
    """
    Create an unverified account, or replace the pending credentials of an
    unverified one, then mail a verification link.
    Raises 409 if the email belongs to a verified account.
    """
    email = account_data.email.lower()
    token = generate_verification_token()
    token_hash = hash_verification_token(token)
    expires_at = (now + timedelta(minutes=settings.VERIFICATION_TOKEN_TTL_MINUTES)).astimezone(timezone.utc)
    hashed_password = hash_password(account_data.password)

    existing = await account_store.find_account_by_email(db, email)
    if existing is not None and existing.is_verified:
        record_registration("duplicate")
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise EmailAlreadyRegisteredError()

    account = None
    if existing is not None:
        account = await account_store.replace_pending_registration(
            db,
            email=email,
            username=account_data.username,
            hashed_password=hashed_password,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        if account is not None:
            record_registration("replaced")
            logger.info("registration_replaced", account_id=account.id, email=email)

    if account is None:
        # No pending account, or it got verified between the lookup and the update
        try:
            account = await account_store.insert_account(
                db,
                Account(
                    username=account_data.username,
                    email=email,
                    hashed_password=hashed_password,
                    is_verified=False,
                    verification_token_hash=token_hash,
                    verification_expires_at=expires_at,
                ),
            )
        except EmailAlreadyRegisteredError:
            record_registration("duplicate")
            logger.warning("registration_failed", reason="email_exists", email=email)
            raise
        record_registration("created")
        logger.info("account_registered", account_id=account.id, email=email)

    link = build_verification_link(settings.PUBLIC_BASE_URL, email, token)
    subject, body = render_verification_email(account.username, link, settings.VERIFICATION_TOKEN_TTL_MINUTES)
    try:
        await mailer.send(email, subject, body)
    except MailError as e:
        mail_failures.inc()
        logger.error("registration_mail_failed", account_id=account.id, error=e.detail)
        return RegistrationResult(account=account, verification_email_sent=False)

    return RegistrationResult(account=account, verification_email_sent=True)


async def verify_email(db: AsyncSession, email: str, token: str, now: datetime) -> Account:
    """
    Consume a verification token.
    A wrong or already used token is 'invalid'; the right token past its
    expiry is 'expired'. Neither changes the account.
    """
    email = email.lower()
    account = await account_store.find_account_by_email(db, email)
    token_hash = hash_verification_token(token)

    if (
        account is None
        or account.is_verified
        or account.verification_token_hash is None
        or not hmac.compare_digest(account.verification_token_hash, token_hash)
    ):
        record_verification("invalid")
        logger.warning("verification_failed", reason="invalid", email=email)
        raise VerificationError(VerificationErrorKind.INVALID)

    if account.verification_expires_at is None or _as_utc(account.verification_expires_at) <= now.astimezone(timezone.utc):
        record_verification("expired")
        logger.warning("verification_failed", reason="expired", account_id=account.id)
        raise VerificationError(VerificationErrorKind.EXPIRED)

    if not await account_store.update_verification(db, account.id, token_hash):
        # Consumed by a concurrent request between our read and the update
        record_verification("invalid")
        logger.warning("verification_failed", reason="already_consumed", account_id=account.id)
        raise VerificationError(VerificationErrorKind.INVALID)

    account.is_verified = True
    account.verification_token_hash = None
    account.verification_expires_at = None
    record_verification("verified")
    logger.info("account_verified", account_id=account.id)
    return account


async def authenticate_account(db: AsyncSession, login_data: AccountLogin, settings: Settings) -> str:
    """
    Authenticate and return a JWT access token.

    Unknown email and wrong password are separate error kinds in logs and
    metrics. With UNIFY_LOGIN_ERRORS they share one message so responses do
    not reveal which emails have accounts.
    """
    email = login_data.email.lower()
    account = await account_store.find_account_by_email(db, email)

    if account is None:
        record_login(AuthErrorKind.UNKNOWN_EMAIL.value)
        logger.warning("login_failed", reason=AuthErrorKind.UNKNOWN_EMAIL.value, email=email)
        message = "Invalid email or password" if settings.UNIFY_LOGIN_ERRORS else "No account with this email"
        raise AuthError(AuthErrorKind.UNKNOWN_EMAIL, message)

    if not verify_password(login_data.password, account.hashed_password):
        record_login(AuthErrorKind.BAD_CREDENTIAL.value)
        logger.warning("login_failed", reason=AuthErrorKind.BAD_CREDENTIAL.value, account_id=account.id)
        message = "Invalid email or password" if settings.UNIFY_LOGIN_ERRORS else "Wrong password"
        raise AuthError(AuthErrorKind.BAD_CREDENTIAL, message)

    if not account.is_verified:
        record_login(AuthErrorKind.UNVERIFIED_ACCOUNT.value)
        logger.warning("login_failed", reason=AuthErrorKind.UNVERIFIED_ACCOUNT.value, account_id=account.id)
        raise AuthError(
            AuthErrorKind.UNVERIFIED_ACCOUNT,
            "Please confirm your email before logging in",
            status_code=403,
            code="ACCOUNT_NOT_VERIFIED",
        )

    token = create_access_token(data={"sub": str(account.id)})
    record_login("success")
    logger.info("account_logged_in", account_id=account.id)
    return token
