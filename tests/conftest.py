"""
Shared test configuration and fixtures.
"""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from lifehub.auth.dependencies import get_current_user
from lifehub.integrations.dependencies import reset_handoff_stores
from lifehub.integrations.registry import reset_provider_registry
from lifehub.main import app
from lifehub.myanimelist.config import MALConfig
from lifehub.myanimelist.dependencies import reset_mal_handoff_store
from lifehub.myanimelist.repository import InMemoryMALRepository, set_mal_repository


TEST_KEY = bytes(range(32))

FIXED_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset process-wide stores before and after each test.

    This fixture runs automatically for every test (autouse=True).
    """
    reset_mal_handoff_store()
    reset_handoff_stores()
    reset_provider_registry()
    set_mal_repository(None)
    yield
    reset_mal_handoff_store()
    reset_handoff_stores()
    reset_provider_registry()
    set_mal_repository(None)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_user():
    """Mock authenticated user."""
    return {
        "uid": "test-user-123",
        "email": "test@example.com",
    }


@pytest.fixture
def mal_config():
    """Fully configured MyAnimeList settings."""
    return MALConfig(
        client_id="mal-client",
        client_secret="mal-secret",
        redirect_uri="http://localhost:8080/api/mal/link/callback",
        tokens_key=TEST_KEY,
        redirect_base_url="http://localhost:8080",
        redirect_path="/feeds",
        sync_cooldown=timedelta(minutes=30),
    )


@pytest.fixture
def memory_repository():
    """In-memory MAL repository."""
    return InMemoryMALRepository()


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def authenticated_client(mock_user):
    """Test client with mocked authentication."""
    app.dependency_overrides[get_current_user] = lambda: mock_user
    yield TestClient(app)
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def unauthenticated_client():
    """Test client without any auth override."""
    app.dependency_overrides.pop(get_current_user, None)
    return TestClient(app)
