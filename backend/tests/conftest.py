import pytest
from sqlalchemy.orm import sessionmaker

from sessionauth.core.database import Base, build_engine
from sessionauth.services.rate_limiter import rate_limiter
from sessionauth.services.token_service import TokenService
from sessionauth.services.token_store import RefreshTokenStore
from sessionauth.services.user_cache import UserCache
from sessionauth.services.user_service import UserService, user_cache


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so several threads can hold their own connections.
    engine = build_engine(f"sqlite:///{tmp_path / 'sessionauth_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users():
    return UserService(cache=UserCache(ttl_seconds=60))


@pytest.fixture
def tokens(users):
    return TokenService(users=users, store=RefreshTokenStore())


@pytest.fixture(autouse=True)
def _reset_process_state():
    user_cache.clear()
    rate_limiter.reset()
    yield
    user_cache.clear()
    rate_limiter.reset()
