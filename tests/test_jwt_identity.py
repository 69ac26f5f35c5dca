"""Tests for token verification and identity construction."""

from datetime import timedelta

import jwt
import pytest
from starlette.requests import Request

from config.settings import AuthSettings
from rbac.identity import AuthenticatedIdentity, AuthenticationError
from rbac.jwt import (
    JWTAuthenticator,
    create_access_token,
    decode_token,
    decode_token_safe,
)


def _request(headers: dict = None, cookie: str = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookie:
        raw_headers.append((b"cookie", cookie.encode()))
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": raw_headers,
        "query_string": b"",
    })


# =============================================================================
# IDENTITY FROM CLAIMS
# =============================================================================

class TestIdentityFromClaims:

    def test_top_level_claims(self):
        identity = AuthenticatedIdentity.from_claims({
            "sub": "u1",
            "agency_id": "a1",
            "email": "u1@agency.test",
            "role": "manager",
        })
        assert identity == AuthenticatedIdentity("u1", "a1", "manager", "u1@agency.test")

    def test_agency_from_app_metadata(self):
        identity = AuthenticatedIdentity.from_claims({
            "sub": "u1",
            "app_metadata": {"agency_id": "a9", "role": "member"},
        })
        assert identity.agency_id == "a9"
        assert identity.role == "member"
        assert identity.email is None

    def test_top_level_agency_wins(self):
        identity = AuthenticatedIdentity.from_claims({
            "sub": "u1",
            "agency_id": "a1",
            "app_metadata": {"agency_id": "a9"},
        })
        assert identity.agency_id == "a1"

    @pytest.mark.parametrize("claims", [
        {"agency_id": "a1"},
        {"sub": "u1"},
        {"sub": "u1", "app_metadata": {}},
        {"sub": "", "agency_id": "a1"},
    ])
    def test_incomplete_claims_rejected(self, claims):
        with pytest.raises(AuthenticationError):
            AuthenticatedIdentity.from_claims(claims)


# =============================================================================
# TOKENS
# =============================================================================

class TestTokens:

    def test_round_trip_claims(self, auth_settings):
        token = create_access_token("u1", "a1", email="u1@agency.test", settings=auth_settings)

        claims = decode_token(token, auth_settings)

        assert claims["sub"] == "u1"
        assert claims["agency_id"] == "a1"
        assert claims["email"] == "u1@agency.test"
        assert "role" not in claims

    def test_expired_token_rejected(self, auth_settings):
        token = create_access_token("u1", "a1", expires_delta=timedelta(seconds=-5), settings=auth_settings)

        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token, auth_settings)
        assert decode_token_safe(token, auth_settings) is None

    def test_audience_enforced_when_configured(self, auth_settings):
        audience_settings = AuthSettings(
            environment="test",
            jwt_secret=auth_settings.jwt_secret,
            jwt_audience="authenticated",
        )
        with_audience = create_access_token("u1", "a1", settings=audience_settings)
        without_audience = create_access_token("u1", "a1", settings=auth_settings)

        assert decode_token(with_audience, audience_settings)["aud"] == "authenticated"
        assert decode_token_safe(without_audience, audience_settings) is None

    def test_algorithm_not_in_allow_list_rejected(self, auth_settings):
        token = jwt.encode(
            {"sub": "u1", "agency_id": "a1", "exp": 9999999999},
            auth_settings.jwt_secret,
            algorithm="HS512",
        )
        assert decode_token_safe(token, auth_settings) is None


# =============================================================================
# REQUEST AUTHENTICATION
# =============================================================================

class TestJWTAuthenticator:

    def test_bearer_header(self, auth_settings, make_token):
        authenticator = JWTAuthenticator(auth_settings)
        request = _request({"Authorization": f"Bearer {make_token('u1', 'a1', role='admin')}"})

        identity = authenticator.authenticate(request)

        assert identity.user_id == "u1"
        assert identity.agency_id == "a1"
        assert identity.role == "admin"

    def test_cookie(self, auth_settings, make_token):
        authenticator = JWTAuthenticator(auth_settings)
        request = _request(cookie=f"access_token={make_token('u1', 'a1')}")

        assert authenticator.authenticate(request).user_id == "u1"

    def test_header_preferred_over_cookie(self, auth_settings, make_token):
        authenticator = JWTAuthenticator(auth_settings)
        request = _request(
            {"Authorization": f"Bearer {make_token('from-header', 'a1')}"},
            cookie=f"access_token={make_token('from-cookie', 'a1')}",
        )

        assert authenticator.authenticate(request).user_id == "from-header"

    def test_custom_cookie_name(self, make_token):
        settings = AuthSettings(
            environment="test",
            jwt_secret="test-jwt-secret-0123456789abcdef0123456789abcdef",
            token_cookie_name="sb-access-token",
        )
        authenticator = JWTAuthenticator(settings)
        request = _request(cookie=f"sb-access-token={make_token('u1', 'a1')}")

        assert authenticator.authenticate(request).user_id == "u1"

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Basic dTE6cGFzcw=="},
        {"Authorization": "Bearer "},
        {"Authorization": "Bearer garbage"},
    ])
    def test_missing_or_bad_credentials(self, auth_settings, headers):
        authenticator = JWTAuthenticator(auth_settings)

        with pytest.raises(AuthenticationError):
            authenticator.authenticate(_request(headers))
        assert authenticator.authenticate_optional(_request(headers)) is None
