from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from sessionauth.config import settings
from sessionauth.core.exceptions import (
    InvalidCredentialsError,
    StorageUnavailableError,
    UnauthenticatedError,
)
from sessionauth.core.security import decode_access_token
from sessionauth.models.token import RefreshToken
from sessionauth.services.token_store import RefreshTokenStore, utcnow


def _register(db, users, email="alice@example.com", password="secret123"):
    return users.register(db, email, password)


def _rows_for(db, user_id, user_agent):
    return db.query(RefreshToken).filter_by(user_id=user_id, user_agent=user_agent).count()


def test_login_binds_refresh_token_to_user_agent(db, users, tokens):
    user = _register(db, users)

    pair = tokens.login(db, "alice@example.com", "secret123", "Chrome")

    assert pair.refresh_token.user_agent == "Chrome"
    assert pair.refresh_token.user_id == user.id
    claims = decode_access_token(pair.access_token)
    assert claims["id"] == user.id
    assert claims["email"] == "alice@example.com"
    assert claims["roles"] == ["USER"]


def test_login_rejects_unknown_email_and_wrong_password_alike(db, users, tokens):
    _register(db, users)

    with pytest.raises(InvalidCredentialsError) as unknown:
        tokens.login(db, "bob@example.com", "secret123", "Chrome")
    with pytest.raises(InvalidCredentialsError) as wrong:
        tokens.login(db, "alice@example.com", "not-the-password", "Chrome")

    assert unknown.value.message == wrong.value.message
    assert unknown.value.status_code == 401
    assert db.query(RefreshToken).count() == 0


def test_repeated_login_keeps_one_row_per_device(db, users, tokens):
    user = _register(db, users)

    first = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    second = tokens.login(db, "alice@example.com", "secret123", "Chrome")

    assert first.refresh_token.token != second.refresh_token.token
    assert _rows_for(db, user.id, "Chrome") == 1
    assert RefreshTokenStore.find(db, first.refresh_token.token) is None
    assert RefreshTokenStore.find(db, second.refresh_token.token) == second.refresh_token
    assert RefreshTokenStore.find_for_device(db, user.id, "Chrome") == second.refresh_token
    assert RefreshTokenStore.find_for_device(db, user.id, "Firefox") is None


def test_devices_get_independent_tokens(db, users, tokens):
    user = _register(db, users)

    chrome = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    firefox = tokens.login(db, "alice@example.com", "secret123", "Firefox")
    tokens.refresh_tokens(db, chrome.refresh_token.token, "Chrome")

    assert _rows_for(db, user.id, "Chrome") == 1
    assert _rows_for(db, user.id, "Firefox") == 1
    assert RefreshTokenStore.find(db, firefox.refresh_token.token) == firefox.refresh_token


def test_refresh_rotates_and_old_token_is_single_use(db, users, tokens):
    user = _register(db, users)
    t1 = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    assert t1.refresh_token.exp > utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS - 1)

    t2 = tokens.refresh_tokens(db, t1.refresh_token.token, "Chrome")

    assert t2.refresh_token.token != t1.refresh_token.token
    assert t2.refresh_token.exp >= t1.refresh_token.exp
    assert t2.refresh_token.user_id == user.id
    assert RefreshTokenStore.find(db, t1.refresh_token.token) is None
    assert _rows_for(db, user.id, "Chrome") == 1

    with pytest.raises(UnauthenticatedError):
        tokens.refresh_tokens(db, t1.refresh_token.token, "Chrome")
    assert RefreshTokenStore.find(db, t2.refresh_token.token) == t2.refresh_token


@pytest.mark.parametrize("value", [None, ""])
def test_refresh_without_token_is_unauthenticated(db, tokens, value):
    with pytest.raises(UnauthenticatedError):
        tokens.refresh_tokens(db, value, "Chrome")


def test_refresh_with_unknown_token_changes_nothing(db, users, tokens):
    _register(db, users)
    pair = tokens.login(db, "alice@example.com", "secret123", "Chrome")

    with pytest.raises(UnauthenticatedError):
        tokens.refresh_tokens(db, "no-such-token", "Chrome")

    assert db.query(RefreshToken).count() == 1
    assert RefreshTokenStore.find(db, pair.refresh_token.token) == pair.refresh_token


def test_expired_refresh_token_is_rejected_and_consumed(db, users, tokens):
    _register(db, users)
    pair = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    db.execute(
        update(RefreshToken)
        .where(RefreshToken.token == pair.refresh_token.token)
        .values(exp=utcnow() - timedelta(seconds=1))
    )
    db.commit()

    with pytest.raises(UnauthenticatedError):
        tokens.refresh_tokens(db, pair.refresh_token.token, "Chrome")

    assert RefreshTokenStore.find(db, pair.refresh_token.token) is None


def test_refresh_for_vanished_user_is_unauthenticated(db, users, tokens, monkeypatch):
    _register(db, users)
    pair = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    monkeypatch.setattr(users, "find_user", lambda session, key: None)

    with pytest.raises(UnauthenticatedError):
        tokens.refresh_tokens(db, pair.refresh_token.token, "Chrome")

    assert RefreshTokenStore.find(db, pair.refresh_token.token) is None


def test_logout_without_token_is_noop(db, users, tokens):
    _register(db, users)
    tokens.login(db, "alice@example.com", "secret123", "Chrome")

    assert tokens.logout(db, None) is False
    assert tokens.logout(db, "") is False
    assert db.query(RefreshToken).count() == 1


def test_logout_removes_exactly_that_token(db, users, tokens):
    _register(db, users)
    _register(db, users, email="bob@example.com")
    chrome = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    firefox = tokens.login(db, "alice@example.com", "secret123", "Firefox")
    bob = tokens.login(db, "bob@example.com", "secret123", "Chrome")

    assert tokens.logout(db, chrome.refresh_token.token) is True

    assert RefreshTokenStore.find(db, chrome.refresh_token.token) is None
    assert RefreshTokenStore.find(db, firefox.refresh_token.token) is not None
    assert RefreshTokenStore.find(db, bob.refresh_token.token) is not None
    # Second logout with the same value is still fine.
    assert tokens.logout(db, chrome.refresh_token.token) is False


def test_refresh_lifetime_follows_settings(db, users, tokens, monkeypatch):
    monkeypatch.setattr(settings, "REFRESH_TOKEN_EXPIRE_DAYS", 7)
    _register(db, users)

    before = utcnow()
    pair = tokens.login(db, "alice@example.com", "secret123", "Chrome")

    lifetime = pair.refresh_token.exp - before
    assert timedelta(days=7) - timedelta(minutes=1) <= lifetime <= timedelta(days=7, minutes=1)


def test_purge_expired_keeps_live_tokens(db, users, tokens):
    _register(db, users)
    live = tokens.login(db, "alice@example.com", "secret123", "Chrome")
    stale = tokens.login(db, "alice@example.com", "secret123", "Firefox")
    db.execute(
        update(RefreshToken)
        .where(RefreshToken.token == stale.refresh_token.token)
        .values(exp=utcnow() - timedelta(days=1))
    )
    db.commit()

    assert RefreshTokenStore.purge_expired(db) == 1
    assert RefreshTokenStore.find(db, live.refresh_token.token) is not None


def test_storage_failure_is_not_a_business_error(db, tokens, monkeypatch):
    def broken_execute(*args, **kwargs):
        raise OperationalError("DELETE FROM refresh_tokens", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "execute", broken_execute)

    with pytest.raises(StorageUnavailableError) as exc_info:
        tokens.refresh_tokens(db, "some-token", "Chrome")
    assert exc_info.value.status_code == 503


def test_overlong_password_login_is_invalid_credentials(db, users, tokens):
    users.register(db, "alice@example.com", "secret123")

    with pytest.raises(InvalidCredentialsError):
        tokens.login(db, "alice@example.com", "x" * 80, "Chrome")


def test_blocked_user_cannot_login_or_refresh(db, users, tokens):
    user = users.register(db, "alice@example.com", "secret123")
    pair = tokens.login(db, "alice@example.com", "secret123", "Chrome")

    users.set_blocked(db, user.id, True)

    with pytest.raises(InvalidCredentialsError):
        tokens.login(db, "alice@example.com", "secret123", "Chrome")
    with pytest.raises(UnauthenticatedError):
        tokens.refresh_tokens(db, pair.refresh_token.token, "Chrome")

    users.set_blocked(db, user.id, False)
    assert tokens.login(db, "alice@example.com", "secret123", "Chrome").refresh_token.user_id == user.id
