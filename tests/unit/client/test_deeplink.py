"""Tests for OAuth return deep links."""

import httpx
import pytest

from insidemeter.client.auth_state import AuthPhase
from insidemeter.client.config import ClientConfig
from insidemeter.client.runtime import ClientRuntime

AUTHENTICATED = {"isAuthenticated": True, "user": {"id": 42, "username": "moonchild"}}


@pytest.fixture
def seen_tokens():
    return []


def make_runtime(env, seen_tokens, tmp_path=None):
    def handler(request):
        token = request.headers.get("X-iOS-Auth-Token")
        seen_tokens.append(token)
        if token == "42:1:abc":
            return httpx.Response(200, json=AUTHENTICATED)
        return httpx.Response(200, json={"isAuthenticated": False, "user": None})

    return ClientRuntime(
        ClientConfig(),
        lambda: env,
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        navigate=lambda route: None,
        storage_dir=tmp_path,
    )


class TestExtractToken:
    """Tests for recognizing auth-success links."""

    @pytest.fixture(autouse=True)
    def setup(self, native_env, seen_tokens):
        self.handler = make_runtime(native_env, seen_tokens).deep_links

    def test_auth_success_link(self):
        """Test that the token is read from the query string."""
        assert self.handler.extract_token("insidemeter://auth/success?token=42:1:abc") == "42:1:abc"

    @pytest.mark.parametrize(
        "url",
        [
            "insidemeter://auth/failure?token=42:1:abc",
            "insidemeter://auth/success",
            "https://insidemeter.com/auth/success?token=42:1:abc",
            "otherapp://auth/success?token=42:1:abc",
        ],
    )
    def test_other_links_ignored(self, url):
        """Test that anything else yields no token."""
        assert self.handler.extract_token(url) is None


class TestHandle:
    """Tests for DeepLinkHandler.handle."""

    async def test_stores_token_and_authenticates(self, native_env, seen_tokens, tmp_path):
        """Test that an auth-success link signs the app in."""
        runtime = make_runtime(native_env, seen_tokens, tmp_path)
        await runtime.start()
        assert runtime.resolver.state.phase == AuthPhase.ANONYMOUS

        handled = await runtime.deep_links.handle("insidemeter://auth/success?token=42:1:abc")

        assert handled is True
        assert runtime.token_store.get() == "42:1:abc"
        assert runtime.resolver.state.is_authenticated
        assert seen_tokens == ["42:1:abc"]
        await runtime.aclose()

    async def test_ignored_in_browser(self, browser_env, seen_tokens):
        """Test that browsers never act on app deep links."""
        runtime = make_runtime(browser_env, seen_tokens)
        assert await runtime.deep_links.handle("insidemeter://auth/success?token=42:1:abc") is False
        assert runtime.token_store.get() is None

    async def test_unrelated_link(self, native_env, seen_tokens):
        """Test that other links leave the state untouched."""
        runtime = make_runtime(native_env, seen_tokens)
        assert await runtime.deep_links.handle("insidemeter://settings") is False
        assert seen_tokens == []
