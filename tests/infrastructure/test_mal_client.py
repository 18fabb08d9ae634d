"""
Unit tests for the MyAnimeList API client.
"""

import base64
import hashlib
from datetime import UTC, datetime
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from respx import MockRouter

from lifehub.core.exceptions import (
    HistoryFetchError,
    NoAccessTokenError,
    ProfileFetchError,
    SeasonalFetchError,
    ServerNotConfiguredError,
    TokenExchangeError,
    UpstreamUnavailableError,
)
from lifehub.myanimelist.client import MyAnimeListClient
from lifehub.myanimelist.config import MAL_API_BASE_URL, MAL_TOKEN_URL, MALConfig
from lifehub.myanimelist.pkce import code_challenge, generate_code_verifier


NOW = datetime(2024, 5, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def client(mal_config):
    return MyAnimeListClient(mal_config)


class TestPkce:
    """Tests for PKCE helpers."""

    def test_verifier_length_and_alphabet(self):
        verifier = generate_code_verifier()

        assert len(verifier) == 86
        assert all(c.isalnum() or c in "-_" for c in verifier)

    def test_challenge_is_base64url_sha256(self):
        verifier = generate_code_verifier()
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

        assert code_challenge(verifier) == expected


class TestAuthorizationUrl:
    def test_contains_s256_challenge(self, client, mal_config):
        url = client.build_authorization_url("state-1", "verifier-abc")
        params = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}

        assert url.startswith("https://myanimelist.net/v1/oauth2/authorize?")
        assert params["response_type"] == "code"
        assert params["client_id"] == mal_config.client_id
        assert params["code_challenge"] == code_challenge("verifier-abc")
        assert params["code_challenge_method"] == "S256"
        assert params["state"] == "state-1"
        assert params["redirect_uri"] == mal_config.redirect_uri
        assert params["scope"] == "read"

    def test_unconfigured_raises(self):
        client = MyAnimeListClient(MALConfig())

        with pytest.raises(ServerNotConfiguredError):
            client.build_authorization_url("s", "v")


class TestExchangeCode:
    @pytest.mark.asyncio
    async def test_request_shape(self, client, mal_config, respx_mock: MockRouter):
        """Test exchange sends every PKCE field."""
        route = respx_mock.post(MAL_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "tok"})
        )

        tokens = await client.exchange_code("abc", "verifier-abc")

        assert tokens.access_token == "tok"
        form = {
            k: v[0]
            for k, v in parse_qs(route.calls.last.request.content.decode()).items()
        }
        assert form == {
            "client_id": mal_config.client_id,
            "client_secret": mal_config.client_secret,
            "code": "abc",
            "code_verifier": "verifier-abc",
            "grant_type": "authorization_code",
            "redirect_uri": mal_config.redirect_uri,
        }

    @pytest.mark.asyncio
    async def test_secret_omitted_when_unset(self, mal_config, respx_mock: MockRouter):
        config = MALConfig(
            client_id=mal_config.client_id, redirect_uri=mal_config.redirect_uri
        )
        route = respx_mock.post(MAL_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "tok"})
        )

        await MyAnimeListClient(config).exchange_code("abc", "v")

        assert b"client_secret" not in route.calls.last.request.content

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, client, respx_mock: MockRouter):
        respx_mock.post(MAL_TOKEN_URL).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            await client.exchange_code("abc", "v")

        assert exc_info.value.upstream_status == 400

    @pytest.mark.asyncio
    async def test_missing_access_token_raises(self, client, respx_mock: MockRouter):
        respx_mock.post(MAL_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"token_type": "Bearer"})
        )

        with pytest.raises(NoAccessTokenError):
            await client.exchange_code("abc", "v")

    @pytest.mark.asyncio
    async def test_network_error_raises_upstream_unavailable(
        self, client, respx_mock: MockRouter
    ):
        respx_mock.post(MAL_TOKEN_URL).mock(
            side_effect=httpx.ConnectError("Connection failed")
        )

        with pytest.raises(UpstreamUnavailableError):
            await client.exchange_code("abc", "v")


class TestFetchProfile:
    @pytest.mark.asyncio
    async def test_success(self, client, respx_mock: MockRouter):
        route = respx_mock.get(f"{MAL_API_BASE_URL}/users/@me").mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": 1,
                    "name": "u",
                    "picture": "https://img/u.jpg",
                    "anime_statistics": {"mean_score": 7.5, "num_days": 12.3},
                },
            )
        )

        profile = await client.fetch_profile("tok")

        assert profile.id == 1
        assert profile.name == "u"
        assert profile.anime_statistics.mean_score == 7.5
        request = route.calls.last.request
        assert request.headers["authorization"] == "Bearer tok"
        assert request.url.params["fields"] == "anime_statistics"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, client, respx_mock: MockRouter):
        respx_mock.get(f"{MAL_API_BASE_URL}/users/@me").mock(
            return_value=httpx.Response(401)
        )

        with pytest.raises(ProfileFetchError):
            await client.fetch_profile("tok")


class TestFetchHistory:
    @pytest.mark.asyncio
    async def test_success(self, client, respx_mock: MockRouter):
        route = respx_mock.get(f"{MAL_API_BASE_URL}/users/some_user/history").mock(
            return_value=httpx.Response(
                200,
                json={"history": [{"node": {"id": 5, "title": "A"}, "episode": 2}]},
            )
        )

        items = await client.fetch_history("some_user", "tok", NOW)

        assert [(i.mal_id, i.episode) for i in items] == [(5, 2)]
        params = route.calls.last.request.url.params
        assert params["type"] == "anime"
        assert params["limit"] == "50"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, client, respx_mock: MockRouter):
        respx_mock.get(f"{MAL_API_BASE_URL}/users/u/history").mock(
            return_value=httpx.Response(500)
        )

        with pytest.raises(HistoryFetchError):
            await client.fetch_history("u", "tok", NOW)


class TestFetchSeasonal:
    @pytest.mark.asyncio
    async def test_success(self, client, mal_config, respx_mock: MockRouter):
        route = respx_mock.get(f"{MAL_API_BASE_URL}/anime/season/2024/spring").mock(
            return_value=httpx.Response(
                200, json={"data": [{"node": {"id": 9, "title": "S"}}]}
            )
        )

        items = await client.fetch_seasonal(2024, "spring", NOW)

        assert [i.mal_id for i in items] == [9]
        request = route.calls.last.request
        assert request.headers["x-mal-client-id"] == mal_config.client_id
        assert request.url.params["limit"] == "100"
        assert request.url.params["sort"] == "anime_num_list_users"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, client, respx_mock: MockRouter):
        respx_mock.get(f"{MAL_API_BASE_URL}/anime/season/2024/spring").mock(
            return_value=httpx.Response(503)
        )

        with pytest.raises(SeasonalFetchError):
            await client.fetch_seasonal(2024, "spring", NOW)

    @pytest.mark.asyncio
    async def test_without_client_id_raises(self):
        with pytest.raises(ServerNotConfiguredError):
            await MyAnimeListClient(MALConfig()).fetch_seasonal(2024, "spring", NOW)
