import os
import io
import shutil
import tempfile
import uuid

import pytest

# Configure the app for tests before anything imports app.core.config
_upload_dir = tempfile.mkdtemp(prefix="course_portal_uploads_")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_PATH"] = _upload_dir
os.environ["SECRET_KEY"] = "test-secret-key-for-course-portal-tests"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"

from fastapi.testclient import TestClient


@pytest.fixture(scope="session", autouse=True)
def database():
    """Create all tables in the in-memory SQLite database"""
    from app.core.database import init_db

    init_db()
    yield
    shutil.rmtree(_upload_dir, ignore_errors=True)


@pytest.fixture(scope="session")
def client(database):
    """Create test client (runs startup events, shares one event loop)"""
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Clear rate limiter state between tests."""
    from app.core.limiter import limiter, reset_websocket_rate_limits
    yield
    limiter.reset()
    reset_websocket_rate_limits()


@pytest.fixture
def make_user(client):
    """Register a user through the API and return id, token and auth headers"""

    def _make_user(role: str = "student", name: str | None = None) -> dict:
        email = f"{role}_{uuid.uuid4().hex[:10]}@test.io"
        name = name or f"{role.title()} {uuid.uuid4().hex[:4]}"
        response = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "Secret123!", "name": name, "role": role},
        )
        assert response.status_code == 201
        token = response.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/v1/users/me", headers=headers)
        assert me.status_code == 200

        return {
            "id": me.json()["id"],
            "email": email,
            "name": name,
            "token": token,
            "headers": headers,
        }

    return _make_user


@pytest.fixture
def tutor(make_user):
    return make_user("tutor", name="Tina Tutor")


@pytest.fixture
def student(make_user):
    return make_user("student", name="Sam Student")


@pytest.fixture
def create_course(client):
    def _create_course(owner: dict, title: str = "Intro to Python") -> dict:
        response = client.post(
            "/api/v1/courses",
            data={"title": title, "description": "Learn Python from scratch"},
            headers=owner["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create_course


@pytest.fixture
def course(create_course, tutor):
    return create_course(tutor)


@pytest.fixture
def enroll(client):
    def _enroll(user: dict, course_id: int):
        response = client.post(
            "/api/v1/enrollments",
            json={"course_id": course_id},
            headers=user["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _enroll


@pytest.fixture
def video_file():
    """Minimal in-memory MP4 upload"""
    return ("lesson.mp4", io.BytesIO(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64), "video/mp4")
