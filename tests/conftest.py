import os
import tempfile

# Environment must be in place before any gueswi module reads its config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CSRF_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "false"
os.environ["SOFTPHONE_ANSWER_DELAY_SECONDS"] = "0"
os.environ["TTS_PROVIDER"] = "mock"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="gueswi-uploads-")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from gueswi.database import Base, SessionLocal, engine  # noqa: E402
from gueswi.main import app  # noqa: E402
from gueswi.models import User  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fresh_database():
    """Every test starts from empty tables"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def register(client: TestClient, email: str) -> dict:
    response = client.post("/api/register", json={"email": email, "password": PASSWORD})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def register_user():
    """register(client, email) -> the created user payload"""
    return register


@pytest.fixture
def client():
    """Anonymous client"""
    return TestClient(app)


@pytest.fixture
def auth_client():
    """Logged-in owner of a bootstrapped demo tenant"""
    client = TestClient(app)
    register(client, "owner@example.com")
    user = client.get("/api/user")
    assert user.status_code == 200, user.text
    client.user = user.json()
    return client


@pytest.fixture
def admin_client():
    """Platform admin with its own workspace"""
    client = TestClient(app)
    registered = register(client, "admin@example.com")

    db = SessionLocal()
    try:
        db.query(User).filter(User.id == registered["id"]).update({"role": "admin"})
        db.commit()
    finally:
        db.close()

    user = client.get("/api/user")
    assert user.status_code == 200, user.text
    client.user = user.json()
    return client
