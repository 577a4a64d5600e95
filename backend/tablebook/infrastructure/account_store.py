"""
Account persistence.

Registration replacement and verification are single conditional UPDATEs so
two concurrent requests for the same email or token cannot both win.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.core.exceptions import EmailAlreadyRegisteredError
from tablebook.infrastructure.db_errors import database_errors
from tablebook.models.account import Account


async def find_account_by_email(db: AsyncSession, email: str) -> Optional[Account]:
    with database_errors("find_account_by_email"):
        result = await db.execute(select(Account).where(Account.email == email))
    return result.scalar_one_or_none()


async def find_account_by_id(db: AsyncSession, account_id: int) -> Optional[Account]:
    with database_errors("find_account_by_id"):
        result = await db.execute(select(Account).where(Account.id == account_id))
    return result.scalar_one_or_none()


async def insert_account(db: AsyncSession, account: Account) -> Account:
    """Insert and commit. A concurrent registration of the same email loses on the unique index."""
    db.add(account)
    try:
        with database_errors("insert_account"):
            await db.flush()
            await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise EmailAlreadyRegisteredError() from exc
    return account


async def replace_pending_registration(
    db: AsyncSession,
    email: str,
    username: str,
    hashed_password: str,
    token_hash: str,
    expires_at: datetime,
) -> Optional[Account]:
    """
    Overwrite credentials and token of a still-unverified account.
    Returns None when no unverified account exists for the email.
    """
    stmt = (
        update(Account)
        .where(Account.email == email, Account.is_verified.is_(False))
        .values(
            username=username,
            hashed_password=hashed_password,
            verification_token_hash=token_hash,
            verification_expires_at=expires_at,
        )
        .returning(Account)
        .execution_options(synchronize_session="fetch")
    )
    with database_errors("replace_pending_registration"):
        result = await db.execute(stmt)
        account = result.scalar_one_or_none()
        await db.commit()
    return account


async def update_verification(db: AsyncSession, account_id: int, token_hash: str) -> bool:
    """
    Mark the account verified and clear its token, only if the token is still
    the pending one. Returns False when the token was already consumed or replaced.
    """
    stmt = (
        update(Account)
        .where(
            Account.id == account_id,
            Account.verification_token_hash == token_hash,
            Account.is_verified.is_(False),
        )
        .values(is_verified=True, verification_token_hash=None, verification_expires_at=None)
        .returning(Account.id)
        .execution_options(synchronize_session="fetch")
    )
    with database_errors("update_verification"):
        result = await db.execute(stmt)
        verified_id = result.scalar_one_or_none()
        await db.commit()
    return verified_id is not None
