"""
Account model with hashed credentials and a pending email verification token.

Only the SHA-256 of the verification token is stored; the raw token exists
in the outgoing email and nowhere else.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime

from tablebook.db.base import Base, TimestampMixin


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    verification_token_hash = Column(String(64), nullable=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email={self.email}, verified={self.is_verified})>"
