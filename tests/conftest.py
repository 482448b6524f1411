import os

# Settings are read at import time, so the test environment goes first
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["COOKIE_SECURE"] = "true"

import pytest
from pathlib import Path
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.config import settings
from core.database import Base
from models.users import User
from services.token_service import TokenIssuer
from utils.deps import get_db, get_object_storage
from utils.hashing import get_password_hash

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

PASSWORD = "secret1"


class FakeStorage:
    """Stands in for Cloudinary: deletes the temp file and returns a URL."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploaded = []

    def upload(self, local_path):
        if not local_path:
            return None
        Path(local_path).unlink(missing_ok=True)
        if self.fail:
            return None
        name = Path(local_path).name
        self.uploaded.append(name)
        return f"https://res.cloudinary.example/{name}"


def make_user(session: Session, user_name: str, email: str, password: str = PASSWORD) -> User:
    user = User(
        user_name=user_name,
        email=email,
        full_name=user_name.title(),
        avatar_url=f"https://res.cloudinary.example/{user_name}.png",
        password_hash=get_password_hash(password),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(session):
    """Opens extra sessions on the test database, e.g. to interleave requests."""
    return TestingSessionLocal


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(settings)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def alice(session) -> User:
    return make_user(session, "alice", "alice@x.com")


@pytest.fixture
async def client(session: Session, storage: FakeStorage):
    """
    Yields an HTTP client that talks to the app using the test database and
    the fake object storage.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_storage] = lambda: storage

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_factory(session):
    """Creates users straight in the database, bypassing registration."""
    def create(user_name: str, email: str, password: str = PASSWORD) -> User:
        return make_user(session, user_name, email, password)
    return create


@pytest.fixture
def login(client: AsyncClient):
    async def do_login(user_name: str = "alice", password: str = PASSWORD):
        return await client.post("/api/v1/users/login", json={
            "userName": user_name,
            "password": password
        })
    return do_login
