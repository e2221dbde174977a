"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: an access token in the Authorization: Bearer
header. A refresh token presented here is rejected -- it is only accepted by
POST /auth/refresh.

get_current_claims() returns the verified TokenClaims. It proves identity
only. Role decisions are made by the services against the live record.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
It does not import from api/.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import TokenClaims, TokenKind
from auth.tokens import TokenService
from core.errors import InvalidTokenError

logger = logging.getLogger("gatehouse.auth.dependencies")


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid access token. Raises InvalidTokenError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise InvalidTokenError("Missing bearer token")
    tokens: TokenService = request.app.state.token_service
    claims = tokens.verify_token(token)
    if claims.kind is not TokenKind.ACCESS:
        logger.warning("Rejected %s token on %s", claims.kind.value, request.url.path)
        raise InvalidTokenError()
    return claims
