import pytest
from fastapi.testclient import TestClient

from database import ShopStore
from main import create_app
from security import PasswordHasher, TokenService
from settings import Settings

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        log_level="DEBUG",
    )


@pytest.fixture
def store(settings: Settings) -> ShopStore:
    store = ShopStore.from_settings(settings)
    yield store
    store.dispose()


@pytest.fixture
def app(settings: Settings, store: ShopStore):
    return create_app(settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def registered_user(client):
    payload = {"full_name": "Ada", "email": "ada@x.com", "password": "secret"}
    response = client.post("/register", json=payload)
    assert response.status_code == 200
    return payload


@pytest.fixture
def auth_headers(client, registered_user):
    response = client.post(
        "/login",
        json={"email": registered_user["email"], "password": registered_user["password"]},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
