"""
tests/test_config.py -- Settings validation at startup.

A missing or short signing secret must fail Settings() construction, so the
process never starts with an unusable token codec. The profile decides
whether the jwt cookie is Secure and whether plain http is redirected.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.responses import Response

from api.main import install_channel_security
from auth.tokens import set_auth_cookie
from core.config import MIN_SECRET_BYTES, Settings

GOOD_SECRET = "k" * MIN_SECRET_BYTES


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


def test_missing_secret_outside_debug_is_fatal() -> None:
    with pytest.raises(ValueError, match="JWT_SECRET is required"):
        _settings(debug=False, jwt_secret="")


def test_short_secret_is_fatal_even_in_debug() -> None:
    with pytest.raises(ValueError, match="at least 64 bytes"):
        _settings(debug=True, jwt_secret="short")


def test_debug_generates_a_long_enough_secret() -> None:
    s = _settings(debug=True, jwt_secret="")
    assert len(s.jwt_secret.encode("utf-8")) >= MIN_SECRET_BYTES


def test_debug_secrets_differ_between_instances() -> None:
    assert _settings(debug=True, jwt_secret="").jwt_secret != _settings(debug=True, jwt_secret="").jwt_secret


@pytest.mark.parametrize("ttl", [0, -5])
def test_non_positive_expiration_is_fatal(ttl: int) -> None:
    with pytest.raises(ValueError, match="JWT_EXPIRATION_MS"):
        _settings(jwt_secret=GOOD_SECRET, jwt_expiration_ms=ttl)


def test_default_expiration_is_one_day() -> None:
    s = _settings(jwt_secret=GOOD_SECRET)
    assert s.jwt_expiration_ms == 86_400_000
    assert s.jwt_expiration_seconds == 86_400


@pytest.mark.parametrize(
    ("profile", "secure"),
    [("local", False), ("test", False), ("dev", True), ("prod", True)],
)
def test_secure_cookies_follow_profile(profile: str, secure: bool) -> None:
    assert _settings(jwt_secret=GOOD_SECRET, active_profile=profile).secure_cookies is secure


@pytest.mark.parametrize(
    ("profile", "secure"),
    [("local", False), ("dev", True), ("prod", True)],
)
def test_auth_cookie_secure_flag_follows_profile(profile: str, secure: bool) -> None:
    response = Response()
    set_auth_cookie(response, "header.payload.sig", _settings(jwt_secret=GOOD_SECRET, active_profile=profile))
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("jwt=header.payload.sig")
    assert ("Secure" in cookie) is secure


def _ping_app(profile: str) -> FastAPI:
    target = FastAPI()

    @target.get("/ping")
    def ping() -> dict:
        return {"ok": True}

    install_channel_security(target, _settings(jwt_secret=GOOD_SECRET, active_profile=profile))
    return target


def test_prod_redirects_plain_http_to_https() -> None:
    client = TestClient(_ping_app("prod"), follow_redirects=False)
    resp = client.get("http://testserver/ping")
    assert resp.status_code == 307
    assert resp.headers["location"] == "https://testserver/ping"


def test_local_serves_plain_http() -> None:
    client = TestClient(_ping_app("local"), follow_redirects=False)
    assert client.get("http://testserver/ping").status_code == 200


def test_session_key_is_not_the_token_key() -> None:
    s = _settings(jwt_secret=GOOD_SECRET)
    assert s.session_signing_key
    assert s.session_signing_key != s.jwt_secret
    assert s.session_signing_key == _settings(jwt_secret=GOOD_SECRET).session_signing_key


def test_explicit_session_secret_wins() -> None:
    s = _settings(jwt_secret=GOOD_SECRET, session_secret="separate-session-key")
    assert s.session_signing_key == "separate-session-key"
