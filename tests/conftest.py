"""
Pytest fixtures for testing
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from smoketrackr.infrastructure.db.session import Base, build_engine
from smoketrackr.infrastructure.db.models import User


@pytest.fixture
def db_engine():
    """In-memory SQLite with SAVEPOINT support, schema created from the models"""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_user_id():
    """Sample user ID for tests"""
    return 1


@pytest.fixture
def sample_user(db_session, sample_user_id) -> User:
    user = User(id=sample_user_id, email="tester@example.com", name="Tester")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def client(db_session, sample_user):
    """
    TestClient with the DB session and the logged-in user injected

    The session cookie / login flow is bypassed via dependency overrides.
    """
    from smoketrackr.api.deps import get_current_user, get_db
    from smoketrackr.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: sample_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
