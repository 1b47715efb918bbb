"""
Pytest configuration and shared fixtures for EduStream.
"""
import os

# Settings are read at import time; pin the test configuration first
os.environ.update({
    "DATABASE_URL": "sqlite:///:memory:",
    "DB_CREATE_ALL": "false",
    "RATE_LIMIT_ENABLED": "false",
    "JWT_SECRET": "test-secret",
    "ADMIN_EMAILS": "root@edustream.test",
    "FRONTEND_URL": "http://frontend.test",
    "AUTH_SERVICE_URL": "http://auth.test",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_test",
    "STRIPE_BASIC_PRICE_ID": "price_basic",
    "STRIPE_PREMIUM_PRICE_ID": "price_premium",
    "STRIPE_ENTERPRISE_PRICE_ID": "price_enterprise",
    "S3_ENDPOINT": "http://minio:9000",
    "S3_PUBLIC_BASE": "https://cdn.test/storage",
    "S3_BUCKET": "edustream",
    "LOG_LEVEL": "WARNING",
})

# Patch PostgreSQL UUID/JSONB types BEFORE any model imports
from sqlalchemy.dialects import postgresql
from sqlalchemy import JSON, TypeDecorator, CHAR
import uuid as uuid_module


class GUID(TypeDecorator):
    """Platform-independent GUID type. Uses PostgreSQL's UUID type, otherwise uses CHAR(36)."""
    impl = CHAR
    cache_ok = True

    def __init__(self, as_uuid=True):
        self.as_uuid = as_uuid
        super().__init__()

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(_original_uuid(as_uuid=self.as_uuid))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        return uuid_module.UUID(value)


class JSONB(TypeDecorator):
    """SQLite-friendly stand-in for PostgreSQL JSONB."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(_original_jsonb())
        return dialect.type_descriptor(JSON())


_original_uuid = postgresql.UUID
_original_jsonb = postgresql.JSONB
postgresql.UUID = GUID
postgresql.JSONB = JSONB

import json
from typing import Dict, List, Optional

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from edustream.core.errors import Unauthenticated
from edustream.core.security import create_access_token
from edustream.schemas import Principal


class FakeRedis:
    """In-memory subset of the redis client used by sessions and events."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.published: List[tuple] = []
        self.fail_publish = False

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def get(self, key):
        value = self.store.get(key)
        return value.encode("utf-8") if value is not None else None

    def exists(self, key):
        return 1 if key in self.store else 0

    def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.store.pop(key, None) is not None else 0

    def publish(self, channel, message):
        if self.fail_publish:
            from redis.exceptions import ConnectionError as RedisConnectionError
            raise RedisConnectionError("redis is down")
        self.published.append((channel, message))
        return 1

    def close(self):
        return None

    def events(self) -> List[dict]:
        return [json.loads(message) for _, message in self.published]

    def event_names(self) -> List[str]:
        return [event["event"] for event in self.events()]


class FakeS3Client:
    """In-memory subset of the boto3 S3 client."""

    def __init__(self, bucket_exists=True):
        self.buckets = {"edustream"} if bucket_exists else set()
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_delete = False
        self.fail_put = False

    def _error(self, code, operation):
        return ClientError({"Error": {"Code": code, "Message": code}}, operation)

    def head_bucket(self, Bucket):
        if Bucket not in self.buckets:
            raise self._error("404", "HeadBucket")
        return {}

    def create_bucket(self, Bucket):
        self.buckets.add(Bucket)
        return {}

    def put_object(self, Bucket, Key, Body, ContentType=None):
        if self.fail_put:
            raise self._error("InternalError", "PutObject")
        self.objects[Key] = Body
        return {}

    def delete_object(self, Bucket, Key):
        if self.fail_delete:
            raise self._error("AccessDenied", "DeleteObject")
        self.objects.pop(Key, None)
        self.deleted.append(Key)
        return {}


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.

    Uses an in-memory SQLite database for fast, isolated testing.
    UUID and JSONB types have been patched at module level to work with SQLite.
    """
    from edustream.db.base import Base
    import edustream.models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    from edustream.services.session_store import SessionStore
    return SessionStore(fake_redis)


@pytest.fixture
def events(fake_redis):
    from edustream.services.events import EventPublisher
    return EventPublisher(fake_redis, channel="events")


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def file_storage(s3_client):
    from edustream.services.storage import FileStorage
    return FileStorage(
        client=s3_client,
        bucket="edustream",
        endpoint="http://minio:9000",
        public_base="https://cdn.test/storage",
    )


# Users


@pytest.fixture
def make_user(db):
    from edustream.models import User

    def _make(email, role="student", google_id=None, name=None):
        user = User(email=email, role=role, google_id=google_id, name=name or email.split("@")[0])
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@edustream.test", role="admin", google_id="g-admin", name="Ada Admin")


@pytest.fixture
def student_user(make_user):
    return make_user("student@edustream.test", role="student", google_id="g-student", name="Sam Student")


@pytest.fixture
def bearer():
    """Build an Authorization header carrying a freshly signed token."""

    def _headers(user_id: str, role: str = "student", email: str = "payer@edustream.test") -> Dict[str, str]:
        token = create_access_token(user_id=user_id, email=email, role=role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# Application clients


@pytest.fixture
def auth_client(db, session_store):
    """Auth service client with the test database and an in-memory session store."""
    from edustream.core.resources import get_session_store
    from edustream.db.base import get_db
    from edustream.main import auth_app

    def override_get_db():
        yield db

    auth_app.dependency_overrides[get_db] = override_get_db
    auth_app.dependency_overrides[get_session_store] = lambda: session_store

    yield TestClient(auth_app)

    auth_app.dependency_overrides.clear()


class PrincipalHolder:
    """Caller identity returned by the overridden remote verification."""

    def __init__(self):
        self.principal: Optional[Principal] = None

    def set(self, user_id: str, role: str, name: str = "", email: str = ""):
        self.principal = Principal(user_id=user_id, role=role, name=name, email=email)
        return self.principal

    def clear(self):
        self.principal = None


@pytest.fixture
def caller():
    return PrincipalHolder()


@pytest.fixture
def course_client(db, file_storage, events, caller):
    """Course service client; remote token verification is replaced by `caller`."""
    from edustream.core.remote_auth import get_remote_principal
    from edustream.core.resources import get_event_publisher, get_file_storage
    from edustream.db.base import get_db
    from edustream.main import course_app

    def override_get_db():
        yield db

    def override_principal():
        if caller.principal is None:
            raise Unauthenticated("No token provided")
        return caller.principal

    course_app.dependency_overrides[get_db] = override_get_db
    course_app.dependency_overrides[get_file_storage] = lambda: file_storage
    course_app.dependency_overrides[get_event_publisher] = lambda: events
    course_app.dependency_overrides[get_remote_principal] = override_principal

    yield TestClient(course_app)

    course_app.dependency_overrides.clear()


@pytest.fixture
def payment_client(db, events):
    """Payment service client. Tokens are verified locally, as in production."""
    from edustream.core.resources import get_event_publisher
    from edustream.db.base import get_db
    from edustream.main import payment_app

    def override_get_db():
        yield db

    payment_app.dependency_overrides[get_db] = override_get_db
    payment_app.dependency_overrides[get_event_publisher] = lambda: events

    yield TestClient(payment_app)

    payment_app.dependency_overrides.clear()
