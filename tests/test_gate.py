"""
tests/test_gate.py -- Request Gate: allow-list, token extraction, principal install.

The gate is exercised through a minimal FastAPI app that mounts only
request_gate, so each test sees exactly what the gate put on
request.state.principal and nothing else from the real middleware stack.
"""

from __future__ import annotations

import time
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.requests import Request as StarletteRequest

from auth.gate import extract_token, is_public_path, request_gate
from auth.tokens import TokenCodec

SECRET = "g" * 64


def _gate_app(codec) -> FastAPI:
    app = FastAPI()
    app.state.token_codec = codec
    app.middleware("http")(request_gate)

    def _describe(request: Request) -> dict:
        principal = request.state.principal
        if principal is None:
            return {"principal": None}
        return {"principal": {"user_id": principal.user_id, "username": principal.username, "role": principal.role}}

    @app.get("/login")
    def login(request: Request) -> dict:
        return _describe(request)

    @app.get("/css/site.css")
    def stylesheet(request: Request) -> dict:
        return _describe(request)

    @app.get("/whoami")
    def whoami(request: Request) -> dict:
        return _describe(request)

    return app


def _request(headers: dict[str, str] | None = None, path: str = "/whoami") -> StarletteRequest:
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return StarletteRequest({"type": "http", "method": "GET", "path": path, "headers": raw, "query_string": b""})


@pytest.fixture()
def codec() -> TokenCodec:
    return TokenCodec(SECRET, 3_600_000)


# ---------------------------------------------------------------------------
# Allow-list
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "path",
    ["/login", "/login/oauth2/code/google", "/oauth2/authorization/naver", "/css/a.css", "/js/app.js",
     "/img/logo.png", "/images/x.png", "/static/x", "/monitoring", "/monitoring/metrics", "/api/v1/health"],
)
def test_public_paths(path: str) -> None:
    assert is_public_path(path)


@pytest.mark.parametrize("path", ["/", "/loginx", "/api/v1/boards", "/debug-all", "/check-proto", "/cssx/a.css"])
def test_protected_paths(path: str) -> None:
    assert not is_public_path(path)


# ---------------------------------------------------------------------------
# Token extraction
# ---------------------------------------------------------------------------


class TestExtractToken:
    def test_cookie(self) -> None:
        assert extract_token(_request({"Cookie": "jwt=abc"})) == "abc"

    def test_bearer_header(self) -> None:
        assert extract_token(_request({"Authorization": "Bearer xyz"})) == "xyz"

    def test_cookie_wins_over_header(self) -> None:
        assert extract_token(_request({"Cookie": "jwt=abc", "Authorization": "Bearer xyz"})) == "abc"

    @pytest.mark.parametrize("header", ["Basic dXNlcjpwYXNz", "bearer xyz", "Bearer ", "xyz"])
    def test_non_bearer_header_yields_nothing(self, header: str) -> None:
        assert extract_token(_request({"Authorization": header})) is None

    def test_nothing_present(self) -> None:
        assert extract_token(_request()) is None


# ---------------------------------------------------------------------------
# Gate behaviour end-to-end
# ---------------------------------------------------------------------------


class TestRequestGate:
    def test_bearer_token_installs_principal(self, codec: TokenCodec) -> None:
        token = codec.issue(5, "alice", "a@x.com", "ROLE_USER")
        client = TestClient(_gate_app(codec))
        body = client.get("/whoami", headers={"Authorization": f"Bearer {token}"}).json()
        assert body["principal"] == {"user_id": 5, "username": "alice", "role": "ROLE_USER"}

    def test_cookie_token_installs_principal(self, codec: TokenCodec) -> None:
        token = codec.issue(6, "bob", None, "ROLE_ADMIN")
        client = TestClient(_gate_app(codec), cookies={"jwt": token})
        assert client.get("/whoami").json()["principal"]["user_id"] == 6

    def test_cookie_preferred_over_header(self, codec: TokenCodec) -> None:
        cookie_token = codec.issue(1, "cookie-user", None, "ROLE_USER")
        header_token = codec.issue(2, "header-user", None, "ROLE_USER")
        client = TestClient(_gate_app(codec), cookies={"jwt": cookie_token})
        body = client.get("/whoami", headers={"Authorization": f"Bearer {header_token}"}).json()
        assert body["principal"]["username"] == "cookie-user"

    def test_no_token_is_anonymous(self, codec: TokenCodec) -> None:
        resp = TestClient(_gate_app(codec)).get("/whoami")
        assert resp.status_code == 200
        assert resp.json() == {"principal": None}

    def test_bad_token_is_anonymous_not_rejected(self, codec: TokenCodec) -> None:
        resp = TestClient(_gate_app(codec)).get("/whoami", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 200
        assert resp.json() == {"principal": None}

    def test_expired_token_is_anonymous(self) -> None:
        stale = TokenCodec(SECRET, 1000, clock=lambda: time.time() - 3600).issue(1, "alice", None, "ROLE_USER")
        resp = TestClient(_gate_app(TokenCodec(SECRET, 1000))).get(
            "/whoami", headers={"Authorization": f"Bearer {stale}"}
        )
        assert resp.json() == {"principal": None}

    def test_login_page_never_gets_a_principal(self, codec: TokenCodec) -> None:
        """An allow-listed path proceeds without a principal even when a valid token is sent."""
        token = codec.issue(5, "alice", "a@x.com", "ROLE_USER")
        client = TestClient(_gate_app(codec))
        assert client.get("/login").json() == {"principal": None}
        assert client.get("/login", headers={"Authorization": f"Bearer {token}"}).json() == {"principal": None}

    def test_static_prefix_skips_verification(self) -> None:
        spy = MagicMock()
        TestClient(_gate_app(spy)).get("/css/site.css", headers={"Authorization": "Bearer whatever"})
        spy.verify.assert_not_called()

    def test_resolution_error_fails_closed(self) -> None:
        """An unexpected error while resolving leaves the request anonymous and still serves it."""
        broken = MagicMock()
        broken.verify.side_effect = RuntimeError("boom")
        resp = TestClient(_gate_app(broken)).get("/whoami", headers={"Authorization": "Bearer x.y.z"})
        assert resp.status_code == 200
        assert resp.json() == {"principal": None}

    def test_principal_does_not_leak_between_requests(self, codec: TokenCodec) -> None:
        token = codec.issue(9, "zoe", None, "ROLE_USER")
        client = TestClient(_gate_app(codec))
        assert client.get("/whoami", headers={"Authorization": f"Bearer {token}"}).json()["principal"] is not None
        assert client.get("/whoami").json() == {"principal": None}
