"""Refresh token store: single-statement reads and writes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from sessionauth.core.database import storage_guard
from sessionauth.core.security import generate_refresh_token_value
from sessionauth.models.token import RefreshToken

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE ... RETURNING.
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_COLUMNS = (RefreshToken.token, RefreshToken.exp, RefreshToken.user_id, RefreshToken.user_agent)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive values; everything is written in UTC.
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


@dataclass(frozen=True)
class IssuedRefreshToken:
    """Refresh token row as persisted"""

    token: str
    exp: datetime
    user_id: str
    user_agent: str

    @classmethod
    def from_row(cls, row) -> "IssuedRefreshToken":
        return cls(token=row.token, exp=as_utc(row.exp), user_id=row.user_id, user_agent=row.user_agent)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.exp <= (now or utcnow())


class RefreshTokenStore:
    """Persistence of refresh tokens keyed by token value and (user, user agent)."""

    @staticmethod
    def find(db: Session, token: str) -> Optional[IssuedRefreshToken]:
        with storage_guard(db, "refresh token lookup"):
            row = db.execute(select(*_COLUMNS).where(RefreshToken.token == token)).first()
        return IssuedRefreshToken.from_row(row) if row else None

    @staticmethod
    def find_for_device(db: Session, user_id: str, user_agent: str) -> Optional[IssuedRefreshToken]:
        with storage_guard(db, "refresh token device lookup"):
            row = db.execute(
                select(*_COLUMNS).where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.user_agent == user_agent,
                )
            ).first()
        return IssuedRefreshToken.from_row(row) if row else None

    @staticmethod
    def rotate(db: Session, user_id: str, user_agent: str, lifetime: timedelta) -> IssuedRefreshToken:
        """
        Issue a fresh token for (user, user agent) in one statement.

        An existing row for the pair gets its token and expiry overwritten in
        place; otherwise a new row is inserted.
        """
        dialect = db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Refresh token upsert is not supported on {dialect}")

        stmt = insert(RefreshToken).values(
            token=generate_refresh_token_value(),
            exp=utcnow() + lifetime,
            user_id=user_id,
            user_agent=user_agent,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "user_agent"],
            set_={"token": stmt.excluded.token, "exp": stmt.excluded.exp},
        ).returning(*_COLUMNS)

        with storage_guard(db, "refresh token rotate"):
            row = db.execute(stmt).one()
            db.commit()
        return IssuedRefreshToken.from_row(row)

    @staticmethod
    def consume(db: Session, token: str) -> Optional[IssuedRefreshToken]:
        """Delete the row for ``token`` and return what it held, or None."""
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.token == token)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        with storage_guard(db, "refresh token consume"):
            row = db.execute(stmt).first()
            db.commit()
        return IssuedRefreshToken.from_row(row) if row else None

    @staticmethod
    def delete(db: Session, token: str) -> bool:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(synchronize_session=False)
        )
        with storage_guard(db, "refresh token delete"):
            result = db.execute(stmt)
            db.commit()
        return result.rowcount > 0

    @staticmethod
    def delete_for_user(db: Session, user_id: str) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        with storage_guard(db, "refresh token revoke all"):
            result = db.execute(stmt)
            db.commit()
        return result.rowcount

    @staticmethod
    def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.exp <= (now or utcnow()))
            .execution_options(synchronize_session=False)
        )
        with storage_guard(db, "refresh token purge"):
            result = db.execute(stmt)
            db.commit()
        if result.rowcount:
            logger.info("Purged %d expired refresh tokens", result.rowcount)
        return result.rowcount


token_store = RefreshTokenStore()
