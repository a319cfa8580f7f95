"""
Pytest fixtures for Resume Screener tests.
Uses in-memory SQLite shared through one session, real PDFs built with reportlab,
and httpx.MockTransport in place of the Gemini endpoint.
"""
import os

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Use in-memory SQLite for tests - set before config/session load
# Must override any .env DATABASE_URL
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"

from screener.app.core.config import settings
from screener.app.core.dependencies import get_db
from screener.app.db.base import Base
from screener.app.db.session import configure_sqlite
from screener.app.models.analysis import Analysis
from screener.app.models.resume import Resume
from screener.app.models.role import Role
from screener.app.models.user import User
from screener.main import app
from screener.tests.helpers import RESUME_LINES, make_pdf_bytes

# In-memory SQLite for tests - StaticPool ensures all sessions share same DB
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
configure_sqlite(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create tables and a fresh DB session per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    """Job runner sessions reuse the test session (one connection, one transaction at a time)."""
    return lambda: db_session


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    root = tmp_path / "uploads"
    (root / "resumes").mkdir(parents=True)
    monkeypatch.setattr(settings, "upload_dir", str(root))
    return root


@pytest.fixture
def test_user(db_session):
    user = User(id=1, name="Test Recruiter", email="recruiter@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    user = User(id=2, name="Other Recruiter", email="other@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_role(db_session, test_user):
    role = Role(
        user_id=test_user.id,
        name="Backend Engineer",
        requirement="Go, SQL, distributed systems",
        culture="Ownership, clear written communication",
    )
    db_session.add(role)
    db_session.commit()
    db_session.refresh(role)
    return role


@pytest.fixture
def make_resume(db_session, test_user, upload_dir):
    """Store a PDF under the upload dir and create its Resume row."""
    counter = {"n": 0}

    def _make(content: bytes | None = None, user: User | None = None, filename: str = "cv.pdf") -> Resume:
        counter["n"] += 1
        storage_path = f"resumes/resume-{counter['n']}.pdf"
        (upload_dir / storage_path).write_bytes(make_pdf_bytes(RESUME_LINES) if content is None else content)
        resume = Resume(
            user_id=(user or test_user).id,
            original_filename=filename,
            storage_path=storage_path,
        )
        db_session.add(resume)
        db_session.commit()
        db_session.refresh(resume)
        return resume

    return _make


@pytest.fixture
def pending_analysis(db_session, make_resume, test_role):
    resume = make_resume()
    analysis = Analysis(resume_id=resume.id, role_id=test_role.id)
    db_session.add(analysis)
    db_session.commit()
    db_session.refresh(analysis)
    return analysis


@pytest.fixture
def auth_headers(test_user):
    """Bearer token for test user."""
    token = jwt.encode({"sub": str(test_user.id)}, settings.secret_key, algorithm=settings.algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_session, test_user):
    """TestClient whose requests use the test session."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
