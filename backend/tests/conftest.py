import os

# Keep the application engine off any real database during tests.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.directory import actor_from_user  # noqa: E402
from app import models as _models  # noqa: E402,F401


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_user(db_session):
    counter = {"value": 0}

    def _make_user(role: UserRole | str = UserRole.faculty, department: str = "CS", name: str | None = None) -> User:
        counter["value"] += 1
        role = UserRole(role)
        user = User(
            name=name or f"{role.value.title()} {counter['value']}",
            email=f"{role.value}{counter['value']}@example.edu",
            hashed_password="not-a-real-hash",
            role=role,
            department=department,
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_actor(make_user):
    def _make_actor(role: UserRole | str = UserRole.faculty, department: str = "CS", name: str | None = None):
        return actor_from_user(make_user(role, department, name))

    return _make_actor


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

