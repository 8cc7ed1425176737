"""User and session schemas"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum

from sessionauth.core.security import MAX_PASSWORD_BYTES

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


def _check_password_bytes(v):
    if v is not None and len(v.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValueError(f'Password must be at most {MAX_PASSWORD_BYTES} bytes')
    return v


class Role(str, Enum):
    """User role enumeration"""
    USER = "USER"
    ADMIN = "ADMIN"


class Provider(str, Enum):
    """Federated identity providers"""
    GOOGLE = "GOOGLE"
    YANDEX = "YANDEX"


class UserLogin(BaseModel):
    """User login schema"""
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(..., min_length=6)

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        return _check_password_bytes(v)


class UserRegister(BaseModel):
    """User registration schema"""
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(..., min_length=6)
    password_repeat: str

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        return _check_password_bytes(v)

    @model_validator(mode='after')
    def passwords_match(self):
        """Validate both password fields are equal"""
        if self.password != self.password_repeat:
            raise ValueError('Passwords do not match')
        return self


class UserUpdate(BaseModel):
    """Partial update of the current user"""
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    password: Optional[str] = Field(None, min_length=6)
    roles: Optional[List[Role]] = None

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        return _check_password_bytes(v)

    @field_validator('roles')
    @classmethod
    def roles_not_empty(cls, v):
        if v is not None and not v:
            raise ValueError('A user needs at least one role')
        return v


class UserResponse(BaseModel):
    """Public user view; password hash, provider and block flag stay hidden"""
    id: str
    email: str
    roles: List[str]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Access token body; the refresh token travels in a cookie"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
