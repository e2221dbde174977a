"""Unit tests for auth/tokens.py.

Covers:
- Pair issuance: kinds, shared iat, lifetimes, expires_in, identity snapshot
- Verification failures: expired, wrong secret, malformed, missing claims, exp <= iat
- Constructor guards for empty secret and non-positive lifetimes
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Role, TokenKind, User
from auth.tokens import TokenService
from core.errors import InvalidTokenError

SECRET = "unit-test-secret-key-of-sufficient-length"


def _user(**fields) -> User:
    defaults = dict(id="u-1", name="Ann", email="ann@example.com", role=Role.MENTOR, phone="5551234567")
    defaults.update(fields)
    return User(**defaults)


def _raw_token(payload: dict, secret: str = SECRET) -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


def _payload(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "u-1",
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "name": "Ann",
        "email": "ann@example.com",
        "role": "User",
    }
    payload.update(overrides)
    return payload


class TestIssue:
    def test_pair_kinds_and_snapshot(self) -> None:
        tokens = TokenService(SECRET)
        pair = tokens.issue_token_pair(_user())

        access = tokens.verify_token(pair.access_token)
        refresh = tokens.verify_token(pair.refresh_token)

        assert access.kind is TokenKind.ACCESS
        assert refresh.kind is TokenKind.REFRESH
        assert access.sub == refresh.sub == "u-1"
        assert access.role is Role.MENTOR
        assert access.phone == "5551234567"
        assert access.avatar_url is None

    def test_default_lifetimes(self) -> None:
        tokens = TokenService(SECRET)
        pair = tokens.issue_token_pair(_user())
        access = tokens.verify_token(pair.access_token)
        refresh = tokens.verify_token(pair.refresh_token)

        assert access.iat == refresh.iat
        assert access.exp - access.iat == timedelta(minutes=15)
        assert refresh.exp - refresh.iat == timedelta(days=7)
        assert pair.expires_in == 900
        assert pair.token_type == "Bearer"

    def test_custom_access_ttl_sets_expires_in(self) -> None:
        tokens = TokenService(SECRET, access_ttl=timedelta(minutes=5))
        assert tokens.issue_token_pair(_user()).expires_in == 300

    def test_tokens_are_distinct(self) -> None:
        pair = TokenService(SECRET).issue_token_pair(_user())
        assert pair.access_token != pair.refresh_token


class TestVerify:
    def test_expired_token_rejected(self) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = _raw_token(_payload(iat=past, exp=past + timedelta(minutes=15)))
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify_token(token)

    def test_wrong_secret_rejected(self) -> None:
        pair = TokenService(SECRET).issue_token_pair(_user())
        other = TokenService("a-completely-different-secret-key-value")
        with pytest.raises(InvalidTokenError):
            other.verify_token(pair.access_token)

    def test_tampered_token_rejected(self) -> None:
        token = TokenService(SECRET).issue_token_pair(_user()).access_token
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[:-4] + ("AAAA" if signature[-4:] != "AAAA" else "BBBB")])
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify_token(tampered)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_token_rejected(self, token: str) -> None:
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify_token(token)

    def test_missing_type_claim_rejected(self) -> None:
        payload = _payload()
        del payload["type"]
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify_token(_raw_token(payload))

    def test_unknown_role_rejected(self) -> None:
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify_token(_raw_token(_payload(role="Overlord")))

    def test_exp_not_after_iat_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = _raw_token(_payload(iat=now + timedelta(hours=2), exp=now + timedelta(hours=1)))
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify_token(token)


class TestConstructor:
    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService("")

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService(SECRET, access_ttl=timedelta(0))
        with pytest.raises(ValueError):
            TokenService(SECRET, refresh_ttl=timedelta(seconds=-1))
