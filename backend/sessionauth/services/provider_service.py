"""Federated login: provider token verification and find-or-create of users."""

from __future__ import annotations

from typing import Callable, Dict, Optional
import logging

import httpx
from sqlalchemy.orm import Session

from sessionauth.config import settings
from sessionauth.core.exceptions import (
    ProviderUserCreationError,
    ProviderVerificationError,
    ResourceAlreadyExistsError,
    UnauthenticatedError,
)
from sessionauth.core.security import make_unusable_password
from sessionauth.schemas.user import Provider
from sessionauth.services.token_service import TOKENS_ISSUED, TokenPair, TokenService, token_service
from sessionauth.services.user_service import UserService, UserSnapshot, user_service

logger = logging.getLogger(__name__)


class ProviderVerifier:
    """Resolve a provider access token to the email the provider vouches for."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None, timeout: Optional[float] = None):
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.PROVIDER_HTTP_TIMEOUT
        self._handlers: Dict[Provider, Callable[[httpx.Client, str], httpx.Response]] = {
            Provider.GOOGLE: self._google,
            Provider.YANDEX: self._yandex,
        }
        self._email_fields = {Provider.GOOGLE: "email", Provider.YANDEX: "default_email"}

    @staticmethod
    def _google(client: httpx.Client, token: str) -> httpx.Response:
        return client.get(settings.GOOGLE_TOKENINFO_URL, params={"access_token": token})

    @staticmethod
    def _yandex(client: httpx.Client, token: str) -> httpx.Response:
        return client.get(settings.YANDEX_INFO_URL, params={"format": "json", "oauth_token": token})

    def verify(self, provider: Provider, token: str) -> str:
        """
        Ask the provider who owns ``token``

        Returns:
            Verified email address

        Raises:
            ProviderVerificationError: Token rejected, provider unreachable,
                or no email in the answer
        """
        if not token:
            raise ProviderVerificationError(provider.value)

        try:
            with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
                response = self._handlers[provider](client, token)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s rejected access token: HTTP %s", provider.value, exc.response.status_code)
            raise ProviderVerificationError(provider.value) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("%s verification failed: %s", provider.value, exc)
            raise ProviderVerificationError(provider.value) from exc

        email = payload.get(self._email_fields[provider]) if isinstance(payload, dict) else None
        if not email:
            logger.warning("%s answer carried no email", provider.value)
            raise ProviderVerificationError(provider.value)
        return email


class ProviderService:
    """Log users in by a provider-verified email, creating accounts on first sight."""

    def __init__(self, users: UserService, tokens: TokenService):
        self.users = users
        self.tokens = tokens

    def provider_auth(self, db: Session, email: str, user_agent: str, provider: Provider) -> TokenPair:
        """
        Issue a token pair for a provider-verified email

        Args:
            db: Database session
            email: Email confirmed by the provider
            user_agent: Client identifier the refresh token is bound to
            provider: Provider that confirmed the email

        Returns:
            Token pair, also for a user created by this call

        Raises:
            ProviderUserCreationError: The account could not be created
            UnauthenticatedError: The account is blocked
            StorageUnavailableError: The database failed
        """
        user = self.users.find_user(db, email)
        if user is None:
            user = self._create_provider_user(db, email, provider)

        if user.is_blocked:
            logger.warning("Blocked user %s tried to log in via %s", user.id, provider.value)
            raise UnauthenticatedError()

        pair = self.tokens.generate_tokens(db, user, user_agent)
        TOKENS_ISSUED.labels("provider").inc()
        logger.info("User %s logged in via %s", user.id, provider.value)
        return pair

    def _create_provider_user(self, db: Session, email: str, provider: Provider) -> UserSnapshot:
        try:
            return self.users.create_user(
                db,
                email,
                make_unusable_password(),
                provider=provider.value,
            )
        except ResourceAlreadyExistsError:
            # A concurrent first login for the same email created it first.
            user = self.users.find_user(db, email)
            if user is None:
                logger.error("Provider signup for %s via %s failed", email, provider.value)
                raise ProviderUserCreationError(email)
            return user


provider_verifier = ProviderVerifier()
provider_service = ProviderService(users=user_service, tokens=token_service)
