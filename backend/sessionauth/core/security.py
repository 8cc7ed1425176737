"""Security utilities - JWT, password hashing, refresh token values"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Iterable
from jose import JWTError, jwt
import bcrypt
from sessionauth.config import settings
import secrets

# Prefix that bcrypt never produces; hashes starting with it can't be verified.
UNUSABLE_PASSWORD_PREFIX = "!"

# bcrypt only looks at the first 72 bytes and rejects anything longer.
MAX_PASSWORD_BYTES = 72


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Stored bcrypt hash

    Returns:
        bool: True if password matches

    Raises:
        ValueError: If the stored hash is not a bcrypt hash
    """
    if not hashed_password or hashed_password.startswith(UNUSABLE_PASSWORD_PREFIX):
        return False
    password_bytes = plain_password.encode('utf-8')
    if len(password_bytes) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(
        password_bytes,
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def make_unusable_password() -> str:
    """Placeholder hash for provider-only accounts"""
    return UNUSABLE_PASSWORD_PREFIX + secrets.token_urlsafe(24)


def create_access_token(
    user_id: str,
    email: str,
    roles: Iterable[str],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create JWT access token carrying the user's identity claims

    Args:
        user_id: User ID (also stored as ``sub``)
        email: User email
        roles: Role tags
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        str: Encoded JWT token
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": str(user_id),
        "id": str(user_id),
        "email": email,
        "roles": list(roles),
        "typ": "access",
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify JWT access token

    Args:
        token: JWT token string

    Returns:
        Optional[Dict]: Decoded token data or None if invalid, expired
        or not an access token
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("typ") != "access":
        return None
    return payload


def generate_refresh_token_value() -> str:
    """Opaque refresh token value with 256 bits of entropy"""
    return secrets.token_urlsafe(32)
