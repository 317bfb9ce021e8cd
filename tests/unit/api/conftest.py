import httpx
import pytest
from fastapi.testclient import TestClient

from threadly.api.app import create_app
from threadly.config.settings import Settings


@pytest.fixture
def make_settings(tmp_path, encryption_key, slack_settings):
    def _make(**overrides) -> Settings:
        security = {"token_encryption_keys": [encryption_key]}
        security.update(overrides.pop("security", {}))
        scheduler = {"enabled": False}
        scheduler.update(overrides.pop("scheduler", {}))
        return Settings(
            database={"path": tmp_path / "api.db"},
            scheduler=scheduler,
            slack=slack_settings.model_dump(),
            security=security,
            **overrides,
        )

    return _make


@pytest.fixture
def make_client(make_settings, slack_stub):
    clients: list[TestClient] = []

    def _make(**overrides) -> TestClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(slack_stub))
        app = create_app(make_settings(**overrides), slack_http_client=http_client)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def connect_user(client, slack_stub, oauth_payload):
    """Connect a user through the OAuth endpoint."""

    def _connect(user_id: str = "U1", **payload_overrides) -> None:
        slack_stub.on("oauth.v2.access", oauth_payload(**payload_overrides))
        response = client.post("/api/slack/oauth", json={"code": "code-1", "userId": user_id})
        assert response.status_code == 200, response.text

    return _connect
