"""
Pytest configuration and fixtures for SkillPath backend tests.

Provides:
- Test database setup/teardown
- FastAPI test client
- User, skill and enrollment fixtures
- OpenAI mock for AI tests
"""

import pytest
import os
from typing import Generator
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test_skillpath.db"
# Empty key: every generative call fails fast and serves its fallback
os.environ["OPENAI_API_KEY"] = ""
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-skillpath-tests-only"
os.environ["REQUIRE_AUTH"] = "false"

from skillpath.main import app
from skillpath.database import Base, get_db
from skillpath.models.models import User, DomainSkillLevel, EnrolledCourse
from skillpath.services.auth import hash_password, create_access_token
from skillpath.services.openai_service import openai_service

from tests.mocks.openai_mocks import mock_openai_completion


# Test database setup
TEST_DATABASE_URL = "sqlite:///./test_skillpath.db"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database tables once per test session"""
    Base.metadata.create_all(bind=test_engine)
    yield
    # Cleanup after all tests
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()
    if os.path.exists("./test_skillpath.db"):
        os.remove("./test_skillpath.db")


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    """Each test starts with a closed circuit and fresh metrics"""
    openai_service.reset_circuit_breaker()
    openai_service.retry_handler.reset_metrics()
    yield
    openai_service.reset_circuit_breaker()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Provide a database session for each test, with rollback after"""
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    if transaction.is_active:
        transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =========================================================================
# User Fixtures
# =========================================================================

@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user who picked two domains"""
    user = User(
        id="test-user-123",
        username="learner",
        email="learner@skillpath.dev",
        password_hash=hash_password(TEST_PASSWORD),
        full_name="Test Learner",
        selected_domains=["Data Science", "Web Development"],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    user = User(
        id="other-user-456",
        username="someone-else",
        email="other@skillpath.dev",
        password_hash=hash_password(TEST_PASSWORD),
        selected_domains=[],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(test_user.id)}"}


@pytest.fixture
def test_skills(db: Session, test_user: User) -> list[DomainSkillLevel]:
    """Two domains; Data Science was reassessed and is the most recent"""
    now = datetime.utcnow()
    rows = [
        DomainSkillLevel(user_id=test_user.id, domain="Data Science",
                         skill_level="Beginner", determined_at=now - timedelta(days=3)),
        DomainSkillLevel(user_id=test_user.id, domain="Web Development",
                         skill_level="Intermediate", determined_at=now - timedelta(days=2)),
        DomainSkillLevel(user_id=test_user.id, domain="Data Science",
                         skill_level="Advanced", determined_at=now - timedelta(hours=1)),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def test_enrollment(db: Session, test_user: User) -> EnrolledCourse:
    enrollment = EnrolledCourse(
        id="enrollment-123",
        user_id=test_user.id,
        course_id="data-science-pandas",
        course_title="Introduction to Pandas",
        course_platform="Kaggle Learn",
        course_url="https://www.kaggle.com/learn/pandas",
        domain="Data Science",
        is_paid=False,
        progress=0,
        completed=False,
    )
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment


# =========================================================================
# Mock Fixtures
# =========================================================================

@pytest.fixture
def mock_openai():
    """Mock OpenAI API calls for testing without API costs"""
    import skillpath.utils.openai_client as openai_module

    # Reset the cached client
    openai_module._client = None

    mock_instance = MagicMock()
    mock_instance.chat.completions.create.return_value = mock_openai_completion({"result": "mocked response"})

    # Patch the _client directly; get_openai_client returns it when set
    with patch.object(openai_module, '_client', mock_instance):
        yield mock_instance

    # Reset after test to avoid affecting other tests
    openai_module._client = None


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast tests of a single service")
    config.addinivalue_line("markers", "api: tests that go through the HTTP layer")
    config.addinivalue_line("markers", "integration: multi-step flows across services")
