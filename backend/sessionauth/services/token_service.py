"""Access/refresh token issuance and refresh-token rotation service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
import logging

from prometheus_client import Counter
from sqlalchemy.orm import Session

from sessionauth.config import settings
from sessionauth.core.exceptions import InvalidCredentialsError, UnauthenticatedError
from sessionauth.core.security import create_access_token, verify_password
from sessionauth.services.token_store import IssuedRefreshToken, RefreshTokenStore, token_store
from sessionauth.services.user_service import UserService, UserSnapshot, user_service

logger = logging.getLogger(__name__)

TOKENS_ISSUED = Counter(
    "sessionauth_token_pairs_issued_total",
    "Token pairs issued",
    ["kind"],
)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: IssuedRefreshToken


class TokenService:
    """Issue token pairs, keeping one refresh token per (user, user agent)."""

    def __init__(self, users: UserService, store: RefreshTokenStore):
        self.users = users
        self.store = store

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def login(self, db: Session, email: str, password: str, user_agent: str) -> TokenPair:
        """
        Authenticate with email and password

        Args:
            db: Database session
            email: Email
            password: Plain text password
            user_agent: Client identifier the refresh token is bound to

        Returns:
            Fresh token pair

        Raises:
            InvalidCredentialsError: Unknown email, wrong password or blocked account
        """
        user = self.users.find_user(db, email)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt for %s", email)
            raise InvalidCredentialsError()
        if user.is_blocked:
            logger.warning("Blocked user %s tried to log in", user.id)
            raise InvalidCredentialsError()

        pair = self.generate_tokens(db, user, user_agent)
        TOKENS_ISSUED.labels("login").inc()
        logger.info("User logged in: %s", user.id)
        return pair

    def refresh_tokens(self, db: Session, refresh_token: Optional[str], user_agent: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair

        The presented token is deleted whether or not the exchange succeeds,
        so an expired or replayed value can never be used again.

        Raises:
            UnauthenticatedError: Missing, unknown or expired token, or the
                owning user no longer exists or is blocked
        """
        if not refresh_token:
            raise UnauthenticatedError()

        record = self.store.consume(db, refresh_token)
        if record is None:
            raise UnauthenticatedError()
        if record.is_expired():
            logger.info("Rejected expired refresh token for user %s", record.user_id)
            raise UnauthenticatedError()

        user = self.users.find_user(db, record.user_id)
        if user is None:
            logger.warning("Refresh token references missing user %s", record.user_id)
            raise UnauthenticatedError()
        if user.is_blocked:
            logger.warning("Rejected refresh for blocked user %s", user.id)
            raise UnauthenticatedError()

        pair = self.generate_tokens(db, user, user_agent)
        TOKENS_ISSUED.labels("refresh").inc()
        return pair

    def logout(self, db: Session, refresh_token: Optional[str]) -> bool:
        """Delete the refresh token if one was given; returns whether a row went away"""
        if not refresh_token:
            return False
        return self.store.delete(db, refresh_token)

    def generate_tokens(self, db: Session, user: UserSnapshot, user_agent: str) -> TokenPair:
        access_token = create_access_token(user.id, user.email, user.roles)
        refresh_token = self.store.rotate(db, user.id, user_agent, self.refresh_lifetime)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)


token_service = TokenService(users=user_service, store=token_store)
