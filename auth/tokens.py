"""
auth/tokens.py -- Bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Both tokens of a pair are signed with the same
       secret and differ only in the "type" claim and lifetime:
         access  -- 15 minutes, accepted on authenticated routes
         refresh -- 7 days, accepted only by the refresh use case
       The service never decides which kind a caller wants. verify_token()
       checks signature, expiry and payload shape; the caller checks .kind.

  Identity snapshot: name, email, phone, role and avatar_url are copied into
       the payload at issuance. Routes may display them; authorization must
       re-read the live role from the directory because a demoted user keeps
       a valid token until it expires.

  No revocation: a token is valid until exp. Rotating via refresh issues a new
       pair but the old refresh token keeps working until its own expiry.

  SECRET_KEY: passed in by the caller (api/main.py reads it from Settings).
       The service holds no module-level state.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import Role, TokenClaims, TokenKind, TokenPair, User
from core.errors import InvalidTokenError, TokenCreationError

logger = logging.getLogger("gatehouse.auth.tokens")

_ALGORITHM = "HS256"

DEFAULT_ACCESS_TTL = timedelta(minutes=15)
DEFAULT_REFRESH_TTL = timedelta(days=7)


class TokenService:
    """Issue and verify signed access/refresh token pairs.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key)
        pair = tokens.issue_token_pair(user)
        claims = tokens.verify_token(pair.access_token)
        assert claims.kind is TokenKind.ACCESS
    """

    def __init__(
        self,
        secret_key: str,
        access_ttl: timedelta = DEFAULT_ACCESS_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
    ) -> None:
        if not secret_key:
            raise ValueError("Token signing secret cannot be empty")
        if access_ttl <= timedelta(0) or refresh_ttl <= timedelta(0):
            raise ValueError("Token lifetimes must be positive")
        self._secret_key = secret_key
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._access_ttl.total_seconds())

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_token_pair(self, user: User) -> TokenPair:
        """Sign an access and a refresh token for the given user snapshot.

        Both tokens share one issued-at instant. Raises TokenCreationError if
        the signing backend fails.
        """
        now = datetime.now(timezone.utc)
        access = self._encode(user, TokenKind.ACCESS, now, now + self._access_ttl)
        refresh = self._encode(user, TokenKind.REFRESH, now, now + self._refresh_ttl)
        return TokenPair(access_token=access, refresh_token=refresh, expires_in=self.access_ttl_seconds)

    def _encode(self, user: User, kind: TokenKind, issued_at: datetime, expires_at: datetime) -> str:
        payload: dict[str, Any] = {
            "sub": user.id,
            "type": kind.value,
            "iat": issued_at,
            "exp": expires_at,
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "role": user.role.value,
            "avatar_url": user.avatar_url,
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except JWTError as exc:
            logger.error("Failed to sign %s token for user %s: %s", kind.value, user.id, exc)
            raise TokenCreationError() from exc

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_token(self, token: str) -> TokenClaims:
        """Decode and verify a token. Raises InvalidTokenError on any failure.

        Failures are logged at WARNING with the reason; the exception carries
        only the generic message so clients learn nothing about why.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            logger.warning("Token verification failed: expired")
            raise InvalidTokenError() from exc
        except JWTError as exc:
            logger.warning("Token verification failed: %s", exc)
            raise InvalidTokenError() from exc

        try:
            claims = TokenClaims(
                sub=str(payload["sub"]),
                kind=TokenKind(payload["type"]),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                name=payload["name"],
                email=payload["email"],
                role=Role(payload["role"]),
                phone=payload.get("phone"),
                avatar_url=payload.get("avatar_url"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Token verification failed: malformed payload (%s)", exc)
            raise InvalidTokenError() from exc

        if claims.exp <= claims.iat:
            logger.warning("Token verification failed: exp not after iat for sub=%s", claims.sub)
            raise InvalidTokenError()
        return claims
