"""Database models"""

from sessionauth.models.user import User
from sessionauth.models.token import RefreshToken

__all__ = ["User", "RefreshToken"]
