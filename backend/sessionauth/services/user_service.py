"""User service - user lookup, registration and account changes"""

from dataclasses import dataclass
from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, Optional, Tuple
from sessionauth.config import settings
from sessionauth.core.database import storage_guard
from sessionauth.core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    DuplicateEmailError,
    ResourceNotFoundError,
)
from sessionauth.core.security import MAX_PASSWORD_BYTES, get_password_hash
from sessionauth.models.user import User
from sessionauth.schemas.user import Role, UserUpdate
from sessionauth.services.user_cache import UserCache
import logging

logger = logging.getLogger(__name__)


def _hash_password(password: str) -> str:
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise BusinessLogicError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return get_password_hash(password)


@dataclass(frozen=True)
class UserSnapshot:
    """Detached, cacheable view of a user row"""
    id: str
    email: str
    password_hash: str
    roles: Tuple[str, ...]
    provider: Optional[str]
    is_blocked: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_orm(cls, user: User) -> "UserSnapshot":
        return cls(
            id=user.id,
            email=user.email,
            password_hash=user.password_hash,
            roles=tuple(user.roles or (Role.USER.value,)),
            provider=user.provider,
            is_blocked=bool(user.is_blocked),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN.value in self.roles


class UserService:
    """Service for user management"""

    def __init__(self, cache: UserCache):
        self.cache = cache

    def find_user(self, db: Session, id_or_email: str) -> Optional[UserSnapshot]:
        """
        Find user by ID or email

        Args:
            db: Database session
            id_or_email: User ID or email

        Returns:
            The user, or None when no such user exists

        Raises:
            StorageUnavailableError: If the lookup itself failed
        """
        if not id_or_email:
            return None

        cached = self.cache.get(id_or_email)
        if cached is not None:
            return cached

        with storage_guard(db, "user lookup"):
            user = (
                db.query(User)
                .filter(or_(User.id == id_or_email, User.email == id_or_email))
                .first()
            )
        if user is None:
            return None

        snapshot = UserSnapshot.from_orm(user)
        self.cache.set(id_or_email, snapshot)
        return snapshot

    def create_user(
        self,
        db: Session,
        email: str,
        password_hash: str,
        roles: Optional[Iterable[str]] = None,
        provider: Optional[str] = None,
    ) -> UserSnapshot:
        """
        Create new user from an already hashed password

        Args:
            db: Database session
            email: Email
            password_hash: bcrypt hash or unusable placeholder
            roles: Role tags, defaults to USER
            provider: Identity provider tag for federated accounts

        Returns:
            Created user
        """
        user = User(
            email=email,
            password_hash=password_hash,
            roles=list(roles) if roles else [Role.USER.value],
            provider=provider,
        )
        with storage_guard(db, "user create"):
            try:
                db.add(user)
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateEmailError()
            db.refresh(user)

        # A negative lookup is never cached, but clear the keys anyway.
        self.cache.invalidate(user.id, user.email)
        logger.info(f"Created user: {user.email} (provider: {user.provider or 'local'})")
        return UserSnapshot.from_orm(user)

    def register(self, db: Session, email: str, password: str) -> UserSnapshot:
        """Register local account with a password"""
        if self.find_user(db, email) is not None:
            raise DuplicateEmailError()
        return self.create_user(db, email, _hash_password(password))

    def update_user(self, db: Session, actor: Dict[str, Any], data: UserUpdate) -> UserSnapshot:
        """
        Update the acting user's own account

        Args:
            db: Database session
            actor: Access token claims of the caller
            data: Fields to change

        Returns:
            Updated user
        """
        if data.roles is not None and Role.ADMIN.value not in actor.get("roles", []):
            raise AuthorizationError("Only admins can change roles")

        with storage_guard(db, "user update"):
            user = db.get(User, actor.get("id"))
            if user is None:
                raise ResourceNotFoundError("User")

            old_email = user.email
            if data.email is not None:
                user.email = data.email
            if data.password is not None:
                user.password_hash = _hash_password(data.password)
            if data.roles is not None:
                user.roles = [role.value for role in data.roles]

            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateEmailError()
            db.refresh(user)

        self.cache.invalidate(user.id, old_email, user.email)
        logger.info(f"Updated user: {user.id}")
        return UserSnapshot.from_orm(user)

    def delete_user(self, db: Session, user_id: str, actor: Dict[str, Any]) -> str:
        """
        Delete user; allowed for the user themself or an admin

        Args:
            db: Database session
            user_id: User ID
            actor: Access token claims of the caller

        Returns:
            ID of the deleted user
        """
        if actor.get("id") != user_id and Role.ADMIN.value not in actor.get("roles", []):
            raise AuthorizationError()

        with storage_guard(db, "user delete"):
            user = db.get(User, user_id)
            if user is None:
                raise ResourceNotFoundError("User")

            email = user.email
            db.delete(user)
            db.commit()

        self.cache.invalidate(user_id, email)
        logger.info(f"Deleted user: {email}")
        return user_id

    def set_blocked(self, db: Session, user_id: str, blocked: bool) -> UserSnapshot:
        """Block or unblock an account"""
        with storage_guard(db, "user block"):
            user = db.get(User, user_id)
            if user is None:
                raise ResourceNotFoundError("User")
            user.is_blocked = blocked
            db.commit()
            db.refresh(user)

        self.cache.invalidate(user.id, user.email)
        logger.warning(f"User {user.email} {'blocked' if blocked else 'unblocked'}")
        return UserSnapshot.from_orm(user)

    def ensure_admin(self, db: Session, email: str, password: str) -> Optional[UserSnapshot]:
        """Create the bootstrap admin account if it does not exist yet"""
        if self.find_user(db, email) is not None:
            return None
        return self.create_user(
            db,
            email,
            _hash_password(password),
            roles=[Role.ADMIN.value, Role.USER.value],
        )


# Singleton instance
user_cache: UserCache[UserSnapshot] = UserCache(ttl_seconds=settings.get_user_cache_ttl())
user_service = UserService(cache=user_cache)
