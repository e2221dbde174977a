"""
auth/oauth.py -- GitHub and Google OAuth resolvers built on Authlib.

Each resolver turns an authorization code into a normalized OAuthProfile in
three steps, each usable on its own:

  build_authorization_url(state) -> consent-screen URL
  exchange_code(code)            -> provider access token
  fetch_profile(access_token)    -> OAuthProfile

Authlib's requests-backed OAuth2Session does the protocol work (URL building,
token request body, bearer placement). Client credentials travel in the token
request body (client_secret_post), which both providers accept.

Security notes:
  [H1] Email verification is mandatory. The email is the join key for account
       linking, so an unverified address could hand a victim's account to an
       attacker who merely typed it into their provider profile. Resolvers
       raise NoVerifiedEmailError instead of returning a profile without one.

  Every HTTP call carries an explicit timeout (Settings.oauth_timeout_seconds).
  A hung provider must not pin a worker thread indefinitely.

Supported providers:
  github -- authorization code flow; static endpoints; /user/emails fallback.
  google -- authorization code flow; v2 userinfo endpoint; offline access.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from auth.models import OAuthProfile, Provider
from core.config import Settings
from core.errors import NoVerifiedEmailError, OAuthError

logger = logging.getLogger("gatehouse.auth.oauth")

_DEFAULT_TIMEOUT = 10.0


class OAuthResolver(ABC):
    """Base resolver. Subclasses set the endpoint constants and fetch_profile()."""

    provider: Provider
    label: str
    authorize_url: str
    token_url: str
    scope: str
    authorize_params: dict[str, str] = {}

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def _session(self, token: dict | None = None) -> OAuth2Session:
        return OAuth2Session(
            client_id=self.client_id,
            client_secret=self._client_secret,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
            token_endpoint_auth_method="client_secret_post",
            token=token,
        )

    # ------------------------------------------------------------------
    # Flow steps
    # ------------------------------------------------------------------

    def build_authorization_url(self, state: str | None = None) -> str:
        """Return the provider consent-screen URL.

        Embeds client_id, redirect_uri, response_type=code, the scopes and the
        given state (Authlib generates one when state is None).
        """
        session = self._session()
        url, _state = session.create_authorization_url(self.authorize_url, state=state, **self.authorize_params)
        return url

    def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for the provider's access token.

        Raises OAuthError wrapping any transport, HTTP, provider or parse failure.
        """
        session = self._session()
        try:
            token = session.fetch_token(self.token_url, code=code, timeout=self.timeout)
        except (requests.RequestException, AuthlibBaseError, ValueError) as exc:
            logger.warning("%s code exchange failed: %s", self.label, exc)
            raise OAuthError(f"Failed to exchange code: {exc}") from exc

        access_token = token.get("access_token") if token else None
        if not access_token:
            logger.warning("%s token response carried no access_token", self.label)
            raise OAuthError("Failed to parse token response: missing access_token")
        return access_token

    @abstractmethod
    def fetch_profile(self, access_token: str) -> OAuthProfile:
        """Return the verified profile behind a provider access token."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_json(self, session: OAuth2Session, url: str, what: str, headers: dict | None = None) -> Any:
        """GET a provider endpoint and decode JSON, wrapping every failure in OAuthError."""
        try:
            resp = session.get(url, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
        except (requests.RequestException, AuthlibBaseError) as exc:
            logger.warning("%s %s request failed: %s", self.label, what, exc)
            raise OAuthError(f"Failed to fetch {what}: {exc}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            logger.warning("%s %s response was not JSON: %s", self.label, what, exc)
            raise OAuthError(f"Failed to parse {what}: {exc}") from exc


class GitHubResolver(OAuthResolver):
    """GitHub OAuth App flow.

    GitHub only includes the email in /user when the account's email is
    public. Otherwise a second call to /user/emails is required and only the
    entry flagged both primary and verified is accepted [H1].
    """

    provider = Provider.GITHUB
    label = "GitHub"
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"  # noqa: S105 -- URL, not a password
    user_url = "https://api.github.com/user"
    emails_url = "https://api.github.com/user/emails"
    scope = "user:email"

    _HEADERS = {"Accept": "application/vnd.github+json"}

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        session = self._session(token={"access_token": access_token, "token_type": "bearer"})
        info = self._get_json(session, self.user_url, "user info", headers=self._HEADERS)
        if not isinstance(info, dict) or info.get("id") is None:
            raise OAuthError("Failed to parse user info: missing id")

        email = info.get("email")
        if not email:
            emails = self._get_json(session, self.emails_url, "emails", headers=self._HEADERS)
            email = _primary_verified_email(emails)
        if not email:
            logger.info("GitHub user %s has no primary verified email", info["id"])
            raise NoVerifiedEmailError(
                "GitHub account has no primary verified email. "
                "Verify an email address on GitHub before signing in."
            )

        return OAuthProfile(
            provider_user_id=str(info["id"]),
            email=email,
            name=info.get("name"),
            login=info.get("login"),
            avatar_url=info.get("avatar_url"),
        )


def _primary_verified_email(emails: Any) -> str | None:
    if not isinstance(emails, list):
        raise OAuthError("Failed to parse emails: expected a list")
    for entry in emails:
        if isinstance(entry, dict) and entry.get("primary") and entry.get("verified") and entry.get("email"):
            return entry["email"]
    return None


class GoogleResolver(OAuthResolver):
    """Google OAuth 2.0 web-server flow.

    The v2 userinfo response includes the email directly. An explicit
    verified_email=false is rejected the same way as a missing email [H1].
    """

    provider = Provider.GOOGLE
    label = "Google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"  # noqa: S105 -- URL, not a password
    userinfo_url = "https://www.googleapis.com/oauth2/v2/userinfo"
    scope = "openid email profile"
    authorize_params = {"access_type": "offline"}

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        session = self._session(token={"access_token": access_token, "token_type": "bearer"})
        info = self._get_json(session, self.userinfo_url, "user info")
        if not isinstance(info, dict) or not info.get("id"):
            raise OAuthError("Failed to parse user info: missing id")

        email = info.get("email")
        if not email or info.get("verified_email") is False:
            logger.info("Google user %s has no verified email", info["id"])
            raise NoVerifiedEmailError("Google account has no verified email.")

        return OAuthProfile(
            provider_user_id=str(info["id"]),
            email=email,
            name=info.get("name"),
            avatar_url=info.get("picture"),
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def build_resolvers(settings: Settings) -> dict[Provider, OAuthResolver]:
    """Instantiate a resolver for every provider with both client id and secret configured."""
    resolvers: dict[Provider, OAuthResolver] = {}
    if settings.github_enabled:
        resolvers[Provider.GITHUB] = GitHubResolver(
            settings.github_client_id,
            settings.github_client_secret,
            settings.github_redirect_uri,
            timeout=settings.oauth_timeout_seconds,
        )
        logger.info("GitHub OAuth provider registered")
    if settings.google_enabled:
        resolvers[Provider.GOOGLE] = GoogleResolver(
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_redirect_uri,
            timeout=settings.oauth_timeout_seconds,
        )
        logger.info("Google OAuth provider registered")
    return resolvers


def get_enabled_providers(resolvers: dict[Provider, OAuthResolver]) -> list[dict]:
    """Return {"name", "label"} metadata for every registered provider.

    Used by GET /api/v1/auth/providers so a login page can render buttons.
    """
    return [{"name": r.provider.value, "label": r.label} for r in resolvers.values()]
