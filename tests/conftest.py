import os

# Settings are read at import time by app modules
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

import uuid  # noqa: E402

import pytest  # noqa: E402

from app.models.identity import Identity  # noqa: E402
from app.services.cart_service import CartService  # noqa: E402
from app.services.identity import IdentityProvider  # noqa: E402
from tests.fakes import FakeCartStore  # noqa: E402


@pytest.fixture
def store() -> FakeCartStore:
    return FakeCartStore()


@pytest.fixture
def user() -> Identity:
    return Identity(user_id=uuid.uuid4(), email="asha@example.com")


@pytest.fixture
def provider() -> IdentityProvider:
    return IdentityProvider()


@pytest.fixture
def notices() -> list:
    return []


@pytest.fixture
async def engine(store, provider, notices) -> CartService:
    """Engine following `provider`, started while signed out."""
    service = CartService(store, provider, notify=notices.append)
    await service.start()
    yield service
    service.close()


@pytest.fixture
async def signed_in(engine, provider, user, store) -> CartService:
    """Engine after `user` signed in; its cart exists and is reconciled."""
    await provider.sign_in(user)
    store.calls.clear()
    return engine
