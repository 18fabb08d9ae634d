"""
Tests for the generic OAuth provider endpoints.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from respx import MockRouter

from lifehub.auth.dependencies import get_current_user
from lifehub.core.domain import PendingAuthorization, TokenHandoff, TokenSet
from lifehub.integrations.config import (
    IntegrationsConfig,
    ProviderConfig,
    get_integrations_config,
)
from lifehub.integrations.dependencies import (
    get_registry,
    get_state_store,
    get_token_store,
)
from lifehub.integrations.providers.spotify import SPOTIFY_TOKEN_URL
from lifehub.integrations.registry import ProviderRegistry
from lifehub.integrations.router import HANDOFF_PREFIX, STATE_PREFIX
from lifehub.main import app


@pytest.fixture
def integrations_config():
    return IntegrationsConfig(
        providers={
            "spotify": ProviderConfig(
                client_id="sp-id",
                client_secret="sp-secret",
                redirect_uri="http://localhost:8080/callback/spotify",
            ),
        },
        redirect_base_url="http://localhost:8080",
        redirect_path="/feeds",
    )


@pytest.fixture
def client(authenticated_client, integrations_config):
    registry = ProviderRegistry(integrations_config)
    app.dependency_overrides[get_integrations_config] = lambda: integrations_config
    app.dependency_overrides[get_registry] = lambda: registry
    yield authenticated_client
    app.dependency_overrides.pop(get_integrations_config, None)
    app.dependency_overrides.pop(get_registry, None)


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def _start(client, provider: str = "spotify") -> str:
    response = client.get("/integrations/oauth/start", params={"provider": provider})
    return _query(response.json()["url"])["state"]


class TestProviders:
    def test_lists_all_with_configured_flag(self, client):
        response = client.get("/integrations/providers")

        assert response.status_code == 200
        providers = {p["name"]: p["configured"] for p in response.json()["providers"]}
        assert providers["spotify"] is True
        assert providers["reddit"] is False
        assert len(providers) == 6


class TestStart:
    def test_returns_url_and_stores_state(self, client, mock_user):
        response = client.get(
            "/integrations/oauth/start", params={"provider": "spotify"}
        )

        assert response.status_code == 200
        state = _query(response.json()["url"])["state"]
        pending = get_state_store().peek(STATE_PREFIX + state)
        assert pending == PendingAuthorization(
            user_id=mock_user["uid"], provider="spotify"
        )

    def test_unknown_provider(self, client):
        response = client.get(
            "/integrations/oauth/start", params={"provider": "myspace"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "unsupported_provider"}

    def test_unconfigured_provider(self, client):
        response = client.get(
            "/integrations/oauth/start", params={"provider": "reddit"}
        )

        assert response.status_code == 500
        assert response.json() == {"error": "provider_not_configured"}
        assert len(get_state_store()) == 0

    def test_requires_authentication(self, unauthenticated_client):
        response = unauthenticated_client.get(
            "/integrations/oauth/start", params={"provider": "spotify"}
        )

        assert response.status_code == 401


class TestCallback:
    def test_success_redirects_with_handoff(self, client, respx_mock: MockRouter):
        respx_mock.post(SPOTIFY_TOKEN_URL).mock(
            return_value=httpx.Response(
                200, json={"access_token": "at", "refresh_token": "rt"}
            )
        )
        state = _start(client)

        response = client.get(
            "/integrations/oauth/callback/spotify",
            params={"code": "abc", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("http://localhost:8080/feeds?")
        params = _query(location)
        assert params["provider"] == "spotify"
        handoff = get_token_store().peek(HANDOFF_PREFIX + params["handoff"])
        assert handoff.tokens.access_token == "at"

    def test_provider_error_redirects(self, client):
        response = client.get(
            "/integrations/oauth/callback/spotify",
            params={"error": "access_denied"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert _query(response.headers["location"]) == {
            "oauth": "error",
            "provider": "spotify",
            "reason": "access_denied",
        }

    def test_missing_code_redirects(self, client):
        response = client.get(
            "/integrations/oauth/callback/spotify",
            params={"state": "s"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert _query(response.headers["location"])["reason"] == "missing_code_or_state"

    def test_state_for_other_provider_rejected(self, client):
        """Test a state issued for spotify cannot complete a google callback."""
        state = _start(client, "spotify")

        response = client.get(
            "/integrations/oauth/callback/google",
            params={"code": "abc", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert _query(response.headers["location"])["reason"] == "invalid_state"

    def test_replay_rejected(self, client, respx_mock: MockRouter):
        respx_mock.post(SPOTIFY_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "at"})
        )
        state = _start(client)
        params = {"code": "abc", "state": state}
        client.get(
            "/integrations/oauth/callback/spotify",
            params=params,
            follow_redirects=False,
        )

        response = client.get(
            "/integrations/oauth/callback/spotify",
            params=params,
            follow_redirects=False,
        )

        assert _query(response.headers["location"])["reason"] == "invalid_state"

    def test_exchange_failure_redirects(self, client, respx_mock: MockRouter):
        respx_mock.post(SPOTIFY_TOKEN_URL).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )
        state = _start(client)

        response = client.get(
            "/integrations/oauth/callback/spotify",
            params={"code": "bad", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert _query(response.headers["location"])["reason"] == "token_exchange_failed"

    def test_unknown_provider_redirects(self, client):
        response = client.get(
            "/integrations/oauth/callback/myspace",
            params={"code": "abc", "state": "s"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert _query(response.headers["location"])["reason"] == "unsupported_provider"


class TestHandoff:
    @pytest.fixture
    def parked(self, mock_user):
        get_token_store().put(
            HANDOFF_PREFIX + "h-1",
            TokenHandoff(
                user_id=mock_user["uid"],
                provider="spotify",
                tokens=TokenSet(access_token="at", refresh_token="rt"),
            ),
        )
        return "h-1"

    def test_owner_collects_once(self, client, parked):
        response = client.get("/integrations/oauth/handoff", params={"id": parked})

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "spotify"
        assert data["tokens"]["access_token"] == "at"

        again = client.get("/integrations/oauth/handoff", params={"id": parked})
        assert again.status_code == 404
        assert again.json() == {"error": "handoff_not_found"}

    def test_other_user_gets_404_and_record_stays(self, client, parked):
        app.dependency_overrides[get_current_user] = lambda: {"uid": "intruder"}

        response = client.get("/integrations/oauth/handoff", params={"id": parked})

        assert response.status_code == 404
        assert get_token_store().peek(HANDOFF_PREFIX + parked) is not None

    def test_unknown_id(self, client):
        response = client.get("/integrations/oauth/handoff", params={"id": "nope"})

        assert response.status_code == 404


class TestRefresh:
    def test_refresh_success(self, client, respx_mock: MockRouter):
        respx_mock.post(SPOTIFY_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "new"})
        )

        response = client.post(
            "/integrations/oauth/refresh",
            json={"provider": "spotify", "refresh_token": "rt"},
        )

        assert response.status_code == 200
        assert response.json()["tokens"]["access_token"] == "new"

    def test_refresh_failure(self, client, respx_mock: MockRouter):
        respx_mock.post(SPOTIFY_TOKEN_URL).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )

        response = client.post(
            "/integrations/oauth/refresh",
            json={"provider": "spotify", "refresh_token": "rt"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "token_refresh_failed"}

    def test_refresh_missing_body_field(self, client):
        response = client.post(
            "/integrations/oauth/refresh", json={"provider": "spotify"}
        )

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_request"
