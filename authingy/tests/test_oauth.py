"""Tests for protocol primitives: discovery, callback validation, code grant, ID token, userinfo."""
import base64
import time

import httpx
import pytest

from authingy import oauth
from authingy.errors import (
    AuthorizationResponseError,
    DiscoveryFailed,
    MissingAuthorizationCode,
    StateMismatch,
    TokenExchangeFailed,
    UserFetchFailed,
)
from authingy.oauth import AuthorizationServer

from conftest import CLIENT_ID, ISSUER, make_id_token

SERVER = AuthorizationServer(
    issuer=ISSUER,
    authorization_endpoint=f"{ISSUER}/authorize",
    token_endpoint=f"{ISSUER}/token",
    userinfo_endpoint=f"{ISSUER}/userinfo",
)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _grant(http, **overrides):
    kwargs = dict(
        client_id=CLIENT_ID,
        client_secret="s3cret",
        code="the-code",
        redirect_uri="https://app.example/cb",
        code_verifier="v" * 43,
    )
    kwargs.update(overrides)
    return oauth.authorization_code_grant(http, SERVER, **kwargs)


# --- discovery ---


def test_discovery_url_oidc():
    assert oauth.discovery_url("https://accounts.google.com") == (
        "https://accounts.google.com/.well-known/openid-configuration"
    )
    assert oauth.discovery_url("https://www.linkedin.com/oauth") == (
        "https://www.linkedin.com/oauth/.well-known/openid-configuration"
    )


def test_discovery_url_oauth2_inserts_well_known_before_path():
    assert oauth.discovery_url("https://as.example/tenant1", "oauth2") == (
        "https://as.example/.well-known/oauth-authorization-server/tenant1"
    )
    assert oauth.discovery_url("https://as.example", "oauth2") == (
        "https://as.example/.well-known/oauth-authorization-server"
    )


def test_discovery_url_unknown_algorithm():
    with pytest.raises(ValueError):
        oauth.discovery_url("https://as.example", "saml")


def test_discover_success(idp, http):
    server = oauth.discover(http, ISSUER)
    assert server.issuer == ISSUER
    assert server.authorization_endpoint == f"{ISSUER}/authorize"
    assert server.token_endpoint == f"{ISSUER}/token"
    assert server.userinfo_endpoint == f"{ISSUER}/userinfo"
    assert server.jwks_uri == f"{ISSUER}/jwks"
    assert server.metadata["issuer"] == ISSUER


def test_discover_issuer_mismatch(idp, http):
    idp.discovery["issuer"] = "https://evil.example"
    with pytest.raises(DiscoveryFailed) as exc_info:
        oauth.discover(http, ISSUER)
    assert exc_info.value.details["issuer"] == "https://evil.example"


def test_discover_http_error(idp, http):
    idp.discovery_status = 503
    with pytest.raises(DiscoveryFailed) as exc_info:
        oauth.discover(http, ISSUER)
    assert exc_info.value.details["status"] == 503


def test_discover_not_json():
    http = _client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(DiscoveryFailed):
        oauth.discover(http, ISSUER)


def test_discover_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DiscoveryFailed):
        oauth.discover(_client(handler), ISSUER)


# --- authorization response ---


def test_validate_authorization_response_returns_code():
    url = "https://app.example/cb?code=abc&state=s1"
    assert oauth.validate_authorization_response(url, "s1") == "abc"


def test_validate_authorization_response_state_mismatch():
    with pytest.raises(StateMismatch):
        oauth.validate_authorization_response("https://app.example/cb?code=abc&state=other", "s1")


def test_validate_authorization_response_missing_state():
    with pytest.raises(StateMismatch):
        oauth.validate_authorization_response("https://app.example/cb?code=abc", "s1")


def test_validate_authorization_response_state_compared_exactly():
    with pytest.raises(StateMismatch):
        oauth.validate_authorization_response("https://app.example/cb?code=abc&state=S1", "s1")


def test_validate_authorization_response_repeated_state():
    with pytest.raises(StateMismatch):
        oauth.validate_authorization_response("https://app.example/cb?code=abc&state=s1&state=s1", "s1")


def test_validate_authorization_response_repeated_code():
    with pytest.raises(AuthorizationResponseError) as exc_info:
        oauth.validate_authorization_response("https://app.example/cb?code=abc&code=def&state=s1", "s1")
    assert exc_info.value.details["parameters"] == ["code"]


def test_validate_authorization_response_missing_code():
    with pytest.raises(MissingAuthorizationCode):
        oauth.validate_authorization_response("https://app.example/cb?state=s1", "s1")


def test_validate_authorization_response_empty_code():
    with pytest.raises(MissingAuthorizationCode):
        oauth.validate_authorization_response("https://app.example/cb?state=s1&code=", "s1")


def test_validate_authorization_response_error_param():
    url = "https://app.example/cb?state=s1&error=access_denied&error_description=User+denied"
    with pytest.raises(AuthorizationResponseError) as exc_info:
        oauth.validate_authorization_response(url, "s1")
    assert exc_info.value.message == "User denied"
    assert exc_info.value.details["error"] == "access_denied"


# --- token endpoint ---


def test_grant_client_secret_post():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={"access_token": "at", "token_type": "Bearer"})

    token = _grant(_client(handler))
    assert token["access_token"] == "at"
    request = seen["request"]
    assert request.method == "POST"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert "authorization" not in request.headers
    body = request.content.decode()
    assert "grant_type=authorization_code" in body
    assert "code=the-code" in body
    assert "client_id=acme-client" in body
    assert "client_secret=s3cret" in body
    assert "code_verifier=" + "v" * 43 in body
    assert "redirect_uri=https%3A%2F%2Fapp.example%2Fcb" in body


def test_grant_client_secret_basic():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={"access_token": "at"})

    _grant(_client(handler), auth_method=oauth.CLIENT_SECRET_BASIC)
    request = seen["request"]
    expected = base64.b64encode(f"{CLIENT_ID}:s3cret".encode()).decode()
    assert request.headers["authorization"] == f"Basic {expected}"
    assert "client_secret" not in request.content.decode()


def test_grant_http_error_carries_status_and_body():
    http = _client(lambda request: httpx.Response(401, json={"error": "invalid_client"}))
    with pytest.raises(TokenExchangeFailed) as exc_info:
        _grant(http)
    err = exc_info.value
    assert err.status == 401
    assert err.details["status_text"] == "Unauthorized"
    assert "invalid_client" in err.details["body"]


def test_grant_error_in_200_body():
    http = _client(
        lambda request: httpx.Response(200, json={"error": "bad_verification_code", "error_description": "bad code"})
    )
    with pytest.raises(TokenExchangeFailed) as exc_info:
        _grant(http)
    assert exc_info.value.message == "bad code"
    assert exc_info.value.status == 200


def test_grant_non_json_body():
    http = _client(lambda request: httpx.Response(200, text="access_token=at&scope=x"))
    with pytest.raises(TokenExchangeFailed):
        _grant(http)


def test_grant_missing_access_token():
    http = _client(lambda request: httpx.Response(200, json={"token_type": "Bearer"}))
    with pytest.raises(TokenExchangeFailed):
        _grant(http)


def test_grant_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TokenExchangeFailed) as exc_info:
        _grant(_client(handler))
    assert exc_info.value.status is None


def test_grant_without_token_endpoint():
    server = AuthorizationServer(issuer=ISSUER, authorization_endpoint=f"{ISSUER}/authorize")
    with pytest.raises(TokenExchangeFailed):
        oauth.authorization_code_grant(
            _client(lambda r: httpx.Response(500)),
            server,
            client_id="c",
            client_secret="s",
            code="x",
            redirect_uri="https://c/cb",
            code_verifier="v",
        )


# --- ID token ---


def test_id_token_claims_valid():
    claims = oauth.id_token_claims({"id_token": make_id_token("abc")}, client_id=CLIENT_ID, issuers=[ISSUER])
    assert claims["sub"] == "abc"
    assert claims["aud"] == CLIENT_ID


def test_id_token_claims_missing():
    with pytest.raises(TokenExchangeFailed):
        oauth.id_token_claims({"access_token": "at"}, client_id=CLIENT_ID, issuers=[ISSUER])


def test_id_token_claims_wrong_audience():
    with pytest.raises(TokenExchangeFailed):
        oauth.id_token_claims({"id_token": make_id_token(aud="someone-else")}, client_id=CLIENT_ID, issuers=[ISSUER])


def test_id_token_claims_wrong_issuer():
    with pytest.raises(TokenExchangeFailed):
        oauth.id_token_claims(
            {"id_token": make_id_token(iss="https://evil.example")}, client_id=CLIENT_ID, issuers=[ISSUER]
        )


def test_id_token_claims_expired():
    with pytest.raises(TokenExchangeFailed):
        oauth.id_token_claims({"id_token": make_id_token(exp_in=-3600)}, client_id=CLIENT_ID, issuers=[ISSUER])


def test_id_token_claims_garbage():
    with pytest.raises(TokenExchangeFailed):
        oauth.id_token_claims({"id_token": "not-a-jwt"}, client_id=CLIENT_ID, issuers=[ISSUER])


@pytest.mark.parametrize("iat", ["soon", True, [1]])
def test_id_token_claims_non_numeric_iat(iat):
    with pytest.raises(TokenExchangeFailed) as exc_info:
        oauth.id_token_claims({"id_token": make_id_token(iat=iat)}, client_id=CLIENT_ID, issuers=[ISSUER])
    assert exc_info.value.details == {"reason": "Invalid iat"}


def test_id_token_claims_issued_in_the_future():
    with pytest.raises(TokenExchangeFailed):
        oauth.id_token_claims(
            {"id_token": make_id_token(iat=int(time.time()) + 3600, exp_in=7200)}, client_id=CLIENT_ID, issuers=[ISSUER]
        )


# --- userinfo / resources ---


def test_userinfo_success(idp, http):
    claims = oauth.userinfo(http, SERVER, "at-123", expected_subject="user-1")
    assert claims["email"] == "user@example.com"
    request = idp.requests_to("/userinfo")[-1]
    assert request.headers["authorization"] == "Bearer at-123"


def test_userinfo_subject_mismatch(idp, http):
    with pytest.raises(UserFetchFailed):
        oauth.userinfo(http, SERVER, "at-123", expected_subject="someone-else")


def test_userinfo_http_error_carries_status(idp, http):
    idp.userinfo_status = 401
    with pytest.raises(UserFetchFailed) as exc_info:
        oauth.userinfo(http, SERVER, "at-123", expected_subject="user-1")
    assert exc_info.value.status == 401
    assert "body" not in exc_info.value.details


def test_userinfo_without_endpoint(http):
    with pytest.raises(UserFetchFailed):
        oauth.userinfo(http, AuthorizationServer(issuer=ISSUER), "at", expected_subject="x")


def test_resource_request_sends_params_and_headers():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={"ok": True})

    body = oauth.resource_request(
        _client(handler), "https://api.example/me", "tok", headers={"X-Api": "1"}, params={"fields": "a,b"}
    )
    assert body == {"ok": True}
    request = seen["request"]
    assert request.headers["authorization"] == "Bearer tok"
    assert request.headers["x-api"] == "1"
    assert request.url.params["fields"] == "a,b"


def test_resource_request_invalid_json():
    http = _client(lambda request: httpx.Response(200, text="nope"))
    with pytest.raises(UserFetchFailed):
        oauth.resource_request(http, "https://api.example/me", "tok")
