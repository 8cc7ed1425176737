"""Pydantic schemas for API validation"""

from sessionauth.schemas.user import (
    Role,
    Provider,
    UserLogin,
    UserRegister,
    UserUpdate,
    UserResponse,
    TokenResponse,
)
from sessionauth.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "Role", "Provider", "UserLogin", "UserRegister", "UserUpdate", "UserResponse", "TokenResponse",
    "ErrorResponse", "HealthResponse",
]
