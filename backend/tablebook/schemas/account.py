"""
Pydantic schemas for account-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

# Latin and Cyrillic letters plus spaces
USERNAME_PATTERN = r"^[A-Za-zА-Яа-яЁё ]+$"
# No whitespace anywhere in the password
PASSWORD_PATTERN = r"^\S+$"


class AccountCreate(BaseModel):
    username: str = Field(..., min_length=2, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=50, pattern=PASSWORD_PATTERN)


class AccountLogin(BaseModel):
    email: EmailStr
    password: str


class AccountResponse(BaseModel):
    id: int
    username: str
    email: str
    is_verified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class RegistrationResponse(BaseModel):
    account: AccountResponse
    verification_email_sent: bool
    message: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str
