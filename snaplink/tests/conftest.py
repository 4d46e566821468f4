import os

os.environ["TESTING"] = "True"

import pytest
import fakeredis
from fastapi.testclient import TestClient

from snaplink.database import Base, get_db, SessionLocal, engine
from snaplink.main import app as fastapi_app
from snaplink.models import User
from snaplink.utils import create_access_token
import snaplink.cache

# Mock Redis client
@pytest.fixture(scope="function")
def redis_mock():
    original_redis = snaplink.cache.redis_client

    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)

    snaplink.cache.redis_client = fake_redis

    yield fake_redis

    snaplink.cache.redis_client = original_redis

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def make_user(db):
    def _make_user(username="testuser", role="user", is_active=True):
        user = User(
            username=username,
            email=f"{username}@example.com",
            hashed_password="not-used-in-tests",
            role=role,
            is_active=is_active
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user

def auth_headers(user):
    token = create_access_token({"sub": user.username, "user_id": user.id})
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def headers_for():
    return auth_headers

@pytest.fixture
def client(db, redis_mock):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db

    with TestClient(fastapi_app) as client:
        yield client

    fastapi_app.dependency_overrides = {}

@pytest.fixture
def auth_client(client, make_user):
    user = make_user()

    with TestClient(fastapi_app, headers=auth_headers(user)) as auth_client:
        auth_client.user = user
        yield auth_client
