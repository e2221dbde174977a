"""Unit tests for auth/oauth.py.

Authlib's OAuth2Session is patched at the module boundary so no test touches
the network. Authorization URL tests use the real session because building a
URL is pure.

Covers:
- Authorization URLs carry client_id, redirect_uri, scope, state (and Google's access_type)
- Code exchange: success, transport failure, provider error body, missing access_token
- GitHub profile: public email, /user/emails fallback, no primary+verified email
- Google profile: verified email, verified_email false, missing email
- Every provider call carries the configured timeout
- Registry: only providers with both client id and secret are built
"""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from authlib.integrations.base_client.errors import OAuthError as AuthlibOAuthError

from auth.models import Provider
from auth.oauth import GitHubResolver, GoogleResolver, OAuthResolver, build_resolvers, get_enabled_providers
from core.config import Settings
from core.errors import NoVerifiedEmailError, OAuthError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _github(timeout: float = 10.0) -> GitHubResolver:
    return GitHubResolver("gh-client", "gh-secret", "http://localhost/cb/github", timeout=timeout)


def _google() -> GoogleResolver:
    return GoogleResolver("g-client", "g-secret", "http://localhost/cb/google")


def _response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


# ---------------------------------------------------------------------------
# Authorization URL
# ---------------------------------------------------------------------------


class TestAuthorizationUrl:
    def test_github_url(self) -> None:
        url = _github().build_authorization_url(state="xyz")
        assert url.startswith("https://github.com/login/oauth/authorize?")
        query = _query(url)
        assert query["client_id"] == "gh-client"
        assert query["redirect_uri"] == "http://localhost/cb/github"
        assert query["response_type"] == "code"
        assert query["scope"] == "user:email"
        assert query["state"] == "xyz"

    def test_google_url_requests_offline_access(self) -> None:
        query = _query(_google().build_authorization_url(state="abc"))
        assert query["access_type"] == "offline"
        assert query["scope"] == "openid email profile"
        assert query["state"] == "abc"


# ---------------------------------------------------------------------------
# Code exchange
# ---------------------------------------------------------------------------


class TestExchangeCode:
    @patch("auth.oauth.OAuth2Session")
    def test_returns_access_token(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.return_value = {"access_token": "tok-1", "token_type": "bearer"}
        assert _github(timeout=3.0).exchange_code("code-1") == "tok-1"
        session_cls.return_value.fetch_token.assert_called_once_with(
            GitHubResolver.token_url, code="code-1", timeout=3.0
        )

    @patch("auth.oauth.OAuth2Session")
    def test_transport_failure_is_oauth_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(OAuthError) as exc_info:
            _github().exchange_code("code-1")
        assert exc_info.value.message.startswith("OAuth error: Failed to exchange code")

    @patch("auth.oauth.OAuth2Session")
    def test_provider_error_body_is_oauth_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.side_effect = AuthlibOAuthError(error="bad_verification_code")
        with pytest.raises(OAuthError):
            _google().exchange_code("expired-code")

    @patch("auth.oauth.OAuth2Session")
    def test_missing_access_token_is_oauth_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.return_value = {"token_type": "bearer"}
        with pytest.raises(OAuthError):
            _github().exchange_code("code-1")


# ---------------------------------------------------------------------------
# GitHub profile
# ---------------------------------------------------------------------------


class TestGitHubProfile:
    @patch("auth.oauth.OAuth2Session")
    def test_public_email_used_directly(self, session_cls: MagicMock) -> None:
        session = session_cls.return_value
        session.get.return_value = _response(
            {"id": 1234, "login": "octocat", "name": "Mona", "email": "mona@example.com", "avatar_url": "https://a/1"}
        )

        profile = _github().fetch_profile("tok")

        assert profile.provider_user_id == "1234"
        assert profile.email == "mona@example.com"
        assert profile.login == "octocat"
        assert profile.avatar_url == "https://a/1"
        assert session.get.call_count == 1

    @patch("auth.oauth.OAuth2Session")
    def test_private_email_falls_back_to_emails_endpoint(self, session_cls: MagicMock) -> None:
        session = session_cls.return_value
        session.get.side_effect = [
            _response({"id": 99, "login": "quiet", "name": None, "email": None}),
            _response(
                [
                    {"email": "old@example.com", "primary": False, "verified": True},
                    {"email": "unverified@example.com", "primary": True, "verified": False},
                    {"email": "main@example.com", "primary": True, "verified": True},
                ]
            ),
        ]

        profile = _github(timeout=4.0).fetch_profile("tok")

        assert profile.email == "main@example.com"
        assert profile.display_name == "quiet"
        assert session.get.call_args_list[1].args[0] == GitHubResolver.emails_url
        for call in session.get.call_args_list:
            assert call.kwargs["timeout"] == 4.0

    @patch("auth.oauth.OAuth2Session")
    def test_no_primary_verified_email_rejected(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.side_effect = [
            _response({"id": 99, "login": "quiet", "email": None}),
            _response([{"email": "a@example.com", "primary": True, "verified": False}]),
        ]
        with pytest.raises(NoVerifiedEmailError) as exc_info:
            _github().fetch_profile("tok")
        assert exc_info.value.code == "oauth_error"

    @patch("auth.oauth.OAuth2Session")
    def test_http_error_is_oauth_error(self, session_cls: MagicMock) -> None:
        resp = _response({})
        resp.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        session_cls.return_value.get.return_value = resp
        with pytest.raises(OAuthError) as exc_info:
            _github().fetch_profile("tok")
        assert "Failed to fetch user info" in exc_info.value.message

    @patch("auth.oauth.OAuth2Session")
    def test_non_json_body_is_oauth_error(self, session_cls: MagicMock) -> None:
        resp = _response(None)
        resp.json.side_effect = ValueError("Expecting value")
        session_cls.return_value.get.return_value = resp
        with pytest.raises(OAuthError):
            _github().fetch_profile("tok")

    @patch("auth.oauth.OAuth2Session")
    def test_missing_id_is_oauth_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response({"login": "noid", "email": "x@example.com"})
        with pytest.raises(OAuthError):
            _github().fetch_profile("tok")


# ---------------------------------------------------------------------------
# Google profile
# ---------------------------------------------------------------------------


class TestGoogleProfile:
    @patch("auth.oauth.OAuth2Session")
    def test_verified_profile(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(
            {
                "id": "1098",
                "email": "g@example.com",
                "verified_email": True,
                "name": "Gee",
                "picture": "https://pic/1",
            }
        )
        profile = _google().fetch_profile("tok")
        assert profile.provider_user_id == "1098"
        assert profile.name == "Gee"
        assert profile.avatar_url == "https://pic/1"
        assert profile.login is None

    @patch("auth.oauth.OAuth2Session")
    def test_unverified_email_rejected(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(
            {"id": "1098", "email": "g@example.com", "verified_email": False}
        )
        with pytest.raises(NoVerifiedEmailError):
            _google().fetch_profile("tok")

    @patch("auth.oauth.OAuth2Session")
    def test_missing_email_rejected(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response({"id": "1098", "verified_email": True})
        with pytest.raises(NoVerifiedEmailError):
            _google().fetch_profile("tok")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_build_resolvers_only_configured() -> None:
    settings = Settings(
        debug=True,
        github_client_id="id",
        github_client_secret="secret",
        google_client_id="only-id-no-secret",
        google_client_secret="",
        oauth_timeout_seconds=2.5,
    )
    resolvers = build_resolvers(settings)
    assert list(resolvers) == [Provider.GITHUB]
    assert resolvers[Provider.GITHUB].timeout == 2.5
    assert get_enabled_providers(resolvers) == [{"name": "github", "label": "GitHub"}]


def test_build_resolvers_none_configured() -> None:
    settings = Settings(
        debug=True,
        github_client_id="",
        github_client_secret="",
        google_client_id="",
        google_client_secret="",
    )
    assert build_resolvers(settings) == {}


def test_base_resolver_is_abstract() -> None:
    with pytest.raises(TypeError):
        OAuthResolver("id", "secret", "http://localhost/cb")
