"""API dependencies - request authentication and client identification"""

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from sessionauth.config import settings
from sessionauth.core.database import get_db
from sessionauth.core.security import decode_access_token
from sessionauth.core.exceptions import AuthenticationError, AuthorizationError
from sessionauth.schemas.user import Role
from sessionauth.services.user_service import user_service

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

UNKNOWN_AGENT = "unknown"


def get_user_agent(request: Request) -> str:
    """Client identifier used as the refresh-token partition key"""
    return request.headers.get("user-agent") or UNKNOWN_AGENT


def get_refresh_cookie(
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
) -> Optional[str]:
    return refresh_token or None


def get_client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get access token claims of the calling user

    Args:
        credentials: HTTP Bearer credentials
        db: Database session

    Returns:
        Token claims (id, email, roles)

    Raises:
        AuthenticationError: If token is invalid, user is gone or blocked
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("id")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    user = user_service.find_user(db, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_blocked:
        raise AuthenticationError("User account is blocked")

    return payload


def get_current_admin_user(
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    """
    Get current admin user (authorization check)

    Raises:
        AuthorizationError: If user is not admin
    """
    if Role.ADMIN.value not in current_user.get("roles", []):
        raise AuthorizationError("Admin access required")
    return current_user
