"""Authentication routes"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from sessionauth.api.deps import get_client_host, get_refresh_cookie, get_user_agent
from sessionauth.config import settings
from sessionauth.core.database import get_db
from sessionauth.schemas.response import ErrorResponse
from sessionauth.schemas.user import (
    Provider,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from sessionauth.services.provider_service import provider_service, provider_verifier
from sessionauth.services.rate_limiter import rate_limiter
from sessionauth.services.token_service import TokenPair, token_service
from sessionauth.services.user_service import user_service

router = APIRouter(responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})


def _set_refresh_cookie(response: Response, pair: TokenPair) -> TokenResponse:
    """Put the refresh token in an http-only cookie and return the access token body"""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=pair.refresh_token.token,
        expires=pair.refresh_token.exp,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return TokenResponse(
        access_token=pair.access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(body: UserRegister, db: Session = Depends(get_db)):
    """
    Register a local account

    Returns:
        Created user
    """
    user = user_service.register(db, body.email, body.password)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def login(
    credentials: UserLogin,
    response: Response,
    user_agent: str = Depends(get_user_agent),
    client_host: str = Depends(get_client_host),
    db: Session = Depends(get_db)
):
    """
    Login endpoint - verify credentials, issue access token and refresh cookie

    Args:
        credentials: Email and password
        user_agent: Device the refresh token is bound to
        db: Database session

    Returns:
        Access token
    """
    rate_limiter.enforce(
        "login",
        f"{client_host}:{credentials.email.strip().lower()}",
        [(settings.LOGIN_RATE_LIMIT_PER_MINUTE, 60), (settings.LOGIN_RATE_LIMIT_PER_HOUR, 3600)],
        "Too many login attempts. Please try again later.",
    )

    pair = token_service.login(db, credentials.email, credentials.password, user_agent)
    return _set_refresh_cookie(response, pair)


@router.get("/logout", status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    refresh_token: Optional[str] = Depends(get_refresh_cookie),
    db: Session = Depends(get_db)
):
    """
    Logout endpoint - drop the refresh token of this device

    Succeeds whether or not a token was presented.
    """
    if refresh_token:
        token_service.logout(db, refresh_token)
        response.delete_cookie(
            settings.REFRESH_COOKIE_NAME,
            path="/",
            httponly=True,
            secure=settings.is_production,
        )
    return {"success": True, "message": "Logged out successfully"}


@router.get("/refresh-tokens", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def refresh_tokens(
    response: Response,
    refresh_token: Optional[str] = Depends(get_refresh_cookie),
    user_agent: str = Depends(get_user_agent),
    client_host: str = Depends(get_client_host),
    db: Session = Depends(get_db),
):
    """
    Exchange the refresh cookie for a new access token and refresh cookie
    """
    rate_limiter.enforce(
        "refresh",
        client_host,
        [(settings.REFRESH_RATE_LIMIT_PER_MINUTE, 60), (settings.REFRESH_RATE_LIMIT_PER_HOUR, 3600)],
        "Too many refresh attempts. Slow down.",
    )

    pair = token_service.refresh_tokens(db, refresh_token, user_agent)
    return _set_refresh_cookie(response, pair)


def _provider_login(provider: Provider, token: str, response: Response, user_agent: str, db: Session):
    email = provider_verifier.verify(provider, token)
    pair = provider_service.provider_auth(db, email, user_agent, provider)
    return _set_refresh_cookie(response, pair)


@router.get("/success-google", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def success_google(
    response: Response,
    token: str = Query(..., min_length=1),
    user_agent: str = Depends(get_user_agent),
    db: Session = Depends(get_db),
):
    """Log in with a Google access token"""
    return _provider_login(Provider.GOOGLE, token, response, user_agent, db)


@router.get("/success-yandex", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def success_yandex(
    response: Response,
    token: str = Query(..., min_length=1),
    user_agent: str = Depends(get_user_agent),
    db: Session = Depends(get_db),
):
    """Log in with a Yandex access token"""
    return _provider_login(Provider.YANDEX, token, response, user_agent, db)
