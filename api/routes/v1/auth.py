"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/sign-up              -- register a password account (role User)
  POST /api/v1/auth/sign-in              -- password login; returns a token pair
  POST /api/v1/auth/refresh              -- exchange a refresh token for a new pair
  GET  /api/v1/auth/me                   -- current user (requires access token)
  GET  /api/v1/auth/providers            -- list configured OAuth providers (public)
  GET  /api/v1/auth/{provider}           -- redirect to the provider consent screen
  GET  /api/v1/auth/{provider}/callback  -- finish OAuth; returns a token pair

Handlers are thin: parse, call AuthService, map the result. Every failure is
an AppError rendered by the handler in api/main.py.

Security:
  [H2] POST /sign-in is rate-limited per client IP (LOGIN_RATE_LIMIT).
  [M5] Cache-Control: no-store on every response that carries tokens.
  OAuth state: a random state is stored in the signed Starlette session before
  the redirect and must match on the callback (CSRF protection for the
  authorization code flow).
"""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    OAuthProviderInfo,
    RefreshRequest,
    SignInRequest,
    SignUpRequest,
    TokenResponse,
    UserResponse,
)
from auth.dependencies import get_current_claims
from auth.models import Provider, TokenClaims
from auth.oauth import get_enabled_providers
from auth.service import AuthService
from core.errors import OAuthError

# Auth policy:
# - POST /auth/sign-up, /auth/sign-in, /auth/refresh: public
# - GET  /auth/providers, /auth/{provider}, /auth/{provider}/callback: public
# - GET  /auth/me: requires an access token (get_current_claims)
router = APIRouter()

_STATE_KEY = "oauth_state"


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"  # [M5]


# ---------------------------------------------------------------------------
# Password flows
# ---------------------------------------------------------------------------


@router.post("/auth/sign-up", response_model=UserResponse, status_code=201)
def sign_up(request: Request, body: SignUpRequest) -> UserResponse:
    """Register a new account. Role is always User; duplicate email is 409."""
    service: AuthService = request.app.state.auth_service
    user = service.register(name=body.name, email=body.email, password=body.password, phone=body.phone)
    return UserResponse.from_public(user)


@router.post("/auth/sign-in", response_model=TokenResponse)
@limiter.limit(login_rate_limit)  # [H2]
def sign_in(request: Request, response: Response, body: SignInRequest) -> TokenResponse:
    """Authenticate with email and password.

    Unknown email, OAuth-only account and wrong password all return the same
    401 invalid_credentials so the response does not reveal which emails exist.
    """
    service: AuthService = request.app.state.auth_service
    pair = service.login(body.email, body.password)
    _no_store(response)
    return TokenResponse.from_pair(pair)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, response: Response, body: RefreshRequest) -> TokenResponse:
    """Rotate the token pair. An access token presented here is 401 invalid_token."""
    service: AuthService = request.app.state.auth_service
    pair = service.refresh(body.refresh_token)
    _no_store(response)
    return TokenResponse.from_pair(pair)


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, claims: TokenClaims = Depends(get_current_claims)) -> UserResponse:
    """Return the live record of the authenticated user (not the token snapshot)."""
    service: AuthService = request.app.state.auth_service
    return UserResponse.from_public(service.current_user(claims.sub))


# ---------------------------------------------------------------------------
# OAuth flows
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
def list_providers(request: Request) -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty when no client ids are set."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(request.app.state.oauth_resolvers)]


@router.get("/auth/{provider}")
def oauth_login(request: Request, provider: Provider) -> RedirectResponse:
    """Redirect the browser to the provider's consent screen."""
    service: AuthService = request.app.state.auth_service
    state = secrets.token_urlsafe(32)
    url = service.authorization_url(provider, state=state)
    request.session[_STATE_KEY] = state
    return RedirectResponse(url, status_code=302)


@router.get("/auth/{provider}/callback", response_model=TokenResponse)
def oauth_callback(
    request: Request,
    response: Response,
    provider: Provider,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> TokenResponse:
    """Finish the authorization code flow and sign the user in.

    First sign-in with a provider links the identity to an existing account
    with the same verified email, or provisions a new User account.
    """
    expected_state = request.session.pop(_STATE_KEY, None)
    if error:
        raise OAuthError(f"Provider returned error: {error}")
    if not code:
        raise OAuthError("Missing authorization code")
    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        raise OAuthError("State mismatch")

    service: AuthService = request.app.state.auth_service
    pair = service.oauth_callback(provider, code)
    _no_store(response)
    return TokenResponse.from_pair(pair)
