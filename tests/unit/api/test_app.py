"""Tests for app wiring: health, auth, OAuth redirect and middleware."""

import urllib.parse

import pytest


pytestmark = pytest.mark.unit


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["backgroundJobs"] is False


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"

    generated = client.get("/health").headers["x-request-id"]
    assert generated


def test_oauth_callback_redirects_with_code(client):
    response = client.get(
        "/oauth/callback", params={"code": "abc"}, follow_redirects=False
    )

    assert response.status_code == 302
    location = urllib.parse.urlparse(response.headers["location"])
    query = dict(urllib.parse.parse_qsl(location.query))
    assert f"{location.scheme}://{location.netloc}{location.path}" == (
        "http://localhost:5173/oauth-callback"
    )
    assert query["code"] == "abc"
    assert query["_ts"].isdigit()


def test_oauth_callback_redirects_with_error(client):
    response = client.get(
        "/oauth/callback", params={"error": "access_denied"}, follow_redirects=False
    )

    assert response.status_code == 302
    assert response.headers["location"] == (
        "http://localhost:5173/oauth-callback?error=access_denied"
    )


def test_unknown_route(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "http_error"


class TestBearerAuth:
    @pytest.fixture
    def secured(self, make_client):
        return make_client(security={"auth_token": "s3cret"})

    def test_missing_token(self, secured):
        response = secured.get("/api/slack/oauth-url")

        assert response.status_code == 401
        assert response.json()["error"]["type"] == "authentication_error"

    def test_wrong_token(self, secured):
        response = secured.get(
            "/api/slack/oauth-url", headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401

    def test_valid_token(self, secured):
        response = secured.get(
            "/api/slack/oauth-url", headers={"Authorization": "Bearer s3cret"}
        )
        assert response.status_code == 200

    def test_public_routes(self, secured):
        assert secured.get("/health").status_code == 200
        response = secured.get("/oauth/callback", follow_redirects=False)
        assert response.status_code == 302


def test_cors_preflight(client):
    response = client.options(
        "/api/slack/oauth-url",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_background_supervisor_starts_when_enabled(make_client):
    client = make_client(scheduler={"enabled": True, "delivery_interval_seconds": 60})

    assert client.get("/health").json()["backgroundJobs"] is True
