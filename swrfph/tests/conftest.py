import os

# the module level engine in swrfph.app.db.session is built on import
os.environ.setdefault("DATABASE_URL", "sqlite://")

import dataclasses
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db
from swrfph.app.core.config import get_settings
from swrfph.app.core.security import ACCESS, create_token, hash_password
from swrfph.app.db.base import Base
from swrfph.app.db.models import models_v1  # noqa: F401
from swrfph.app.db.models.models_v1 import Medicine, User
from swrfph.app.db.models.core_types import Role
from swrfph.app.db.session import make_engine, make_session_factory
from swrfph.app.main import create_app

PASSWORD = "secret-pass-1"


@pytest.fixture
def settings(tmp_path):
    return dataclasses.replace(
        get_settings(),
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        bcrypt_rounds=4,
        reports_dir=str(tmp_path / "reports"),
        jwt_secret="test-secret",
    )


@pytest.fixture
def engine(settings):
    """
    One SQLite file per test.

    A file (not :memory:) so several sessions, and the threads of the
    concurrency tests, see the same data.
    """
    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings, session_factory):
    app = create_app(settings)
    app.state.session_factory = session_factory

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: settings
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


# ---------- data helpers ----------
@pytest.fixture
def make_user(db_session):
    def _make(email: str, role: Role = Role.provider, name: str | None = None) -> User:
        user = User(
            email=email,
            name=name or email.split("@")[0],
            password_hash=hash_password(PASSWORD, 4),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_medicine(db_session):
    def _make(name: str, price: str = "10.00", quantity: int = 100, category: str | None = "General") -> Medicine:
        medicine = Medicine(name=name, price=Decimal(price), quantity=quantity, category=category)
        db_session.add(medicine)
        db_session.commit()
        return medicine

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@test.local", Role.admin)


@pytest.fixture
def provider(make_user):
    return make_user("provider@test.local", Role.provider)


@pytest.fixture
def auth_headers(settings):
    def _headers(user: User) -> dict:
        token = create_token(
            settings,
            user_id=user.id,
            email=user.email,
            role=user.role.value,
            token_type=ACCESS,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture
def provider_headers(provider, auth_headers):
    return auth_headers(provider)
