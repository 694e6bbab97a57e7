import base64
from typing import List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from dialogpro.errors import UPSTREAM_USER_MESSAGE
from dialogpro.routes import create_app
from tests.utils import FakeRedis, make_settings


def _admin_headers(token: str = "admin-secret") -> dict:
    encoded = base64.b64encode(token.encode("utf-8")).decode("ascii")
    return {"Authorization": f"Bearer {encoded}"}


class Upstream:
    """Records requests and answers like the chat API."""

    def __init__(self, reply: Optional[dict] = None, status_code: int = 200, status_ok: bool = True):
        self.calls: List[httpx.Request] = []
        self.reply = reply if reply is not None else {"response": "Hi there!"}
        self.status_code = status_code
        self.status_ok = status_ok

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if request.url.path.endswith("/status"):
            return httpx.Response(200 if self.status_ok else 503, json={"status": "ok"})
        return httpx.Response(self.status_code, json=self.reply)


def _client(upstream: Optional[Upstream] = None, redis: Optional[FakeRedis] = None, **overrides) -> TestClient:
    upstream = upstream or Upstream()
    app = create_app(
        make_settings(**overrides),
        redis=redis or FakeRedis(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
    )
    return TestClient(app)


def _bootstrap(client: TestClient) -> str:
    resp = client.get("/widget/config")
    assert resp.status_code == 200
    return resp.json()["nonce"]


def test_health():
    client = _client()
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("x-request-id")


def test_widget_config_starts_session_and_returns_settings():
    client = _client(chat_width=500, primary_color="not-a-color")

    resp = client.get("/widget/config")

    assert resp.status_code == 200
    data = resp.json()
    assert data["messageUrl"] == "/chat/message"
    assert data["historyUrl"] == "/chat/history"
    assert data["nonce"]
    assert data["tokenCount"] == 0
    assert data["settings"]["width"] == 100
    assert data["settings"]["primaryColor"] == "#007bff"
    assert data["settings"]["position"] == "bottom-right"
    assert data["settings"]["tokenLimit"] == 8500
    assert data["i18n"]["tokenLimitReached"] == "Token limit reached"
    assert client.cookies.get("dialogpro_session")
    assert client.cookies.get("dialogpro_tokens")


def test_widget_config_reuses_existing_session():
    client = _client()
    _bootstrap(client)
    first = client.cookies.get("dialogpro_session")

    _bootstrap(client)

    assert client.cookies.get("dialogpro_session") == first


def test_post_message_success():
    upstream = Upstream()
    client = _client(upstream)
    nonce = _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "hello", "nonce": nonce})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["message"] == "Hi there!"
    assert body["data"]["token_count"] == 4
    assert body["data"]["session_valid"] is True
    assert len(upstream.calls) == 1
    session_id = client.cookies.get("dialogpro_session").rpartition(".")[0]
    assert upstream.calls[0].headers["X-Session-ID"] == session_id


def test_post_message_rejects_bad_nonce():
    upstream = Upstream()
    client = _client(upstream)
    _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "hello", "nonce": "123.deadbeef"})

    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "data": {"message": "Security check failed", "error": "invalid_nonce"},
    }
    assert upstream.calls == []


def test_nonce_from_another_session_is_rejected():
    upstream = Upstream()
    redis = FakeRedis()
    nonce = _bootstrap(_client(upstream, redis=redis))

    other = _client(upstream, redis=redis)
    _bootstrap(other)
    resp = other.post("/chat/message", json={"message": "hello", "nonce": nonce})

    assert resp.status_code == 403
    assert upstream.calls == []


def test_post_empty_message_returns_envelope_error():
    client = _client()
    nonce = _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "  ", "nonce": nonce})

    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "data": {"message": "Message cannot be empty", "error": "empty_message"},
    }


def test_post_without_message_field_is_treated_as_empty():
    upstream = Upstream()
    client = _client(upstream)
    nonce = _bootstrap(client)

    resp = client.post("/chat/message", json={"nonce": nonce})

    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "data": {"message": "Message cannot be empty", "error": "empty_message"},
    }
    assert upstream.calls == []


def test_post_without_nonce_field_fails_security_check():
    upstream = Upstream()
    client = _client(upstream)
    _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "hi"})

    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "data": {"message": "Security check failed", "error": "invalid_nonce"},
    }
    assert upstream.calls == []


def test_upstream_failure_returns_generic_message():
    client = _client(Upstream(reply={"error": "db password is hunter2"}, status_code=500))
    nonce = _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "hello", "nonce": nonce})

    assert resp.status_code == 502
    assert resp.json() == {
        "success": False,
        "data": {"message": UPSTREAM_USER_MESSAGE, "error": "http_error"},
    }
    assert "hunter2" not in resp.text


def test_missing_upstream_config_returns_503():
    client = _client(api_endpoint="")
    nonce = _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "hello", "nonce": nonce})

    assert resp.status_code == 503
    assert resp.json()["data"]["error"] == "config_incomplete"


def test_quota_exceeded_returns_403():
    client = _client(token_limit=3)
    nonce = _bootstrap(client)

    resp = client.post("/chat/message", json={"message": "hello", "nonce": nonce})

    assert resp.status_code == 403
    assert resp.json()["data"] == {"message": "Token limit exceeded", "error": "quota_exceeded"}


def test_history_lists_exchanges_oldest_first():
    client = _client()
    nonce = _bootstrap(client)
    client.post("/chat/message", json={"message": "first", "nonce": nonce})
    client.post("/chat/message", json={"message": "second", "nonce": nonce})

    resp = client.get("/chat/history")

    assert resp.status_code == 200
    data = resp.json()
    assert data["session_id"] == client.cookies.get("dialogpro_session").rpartition(".")[0]
    assert [m["user_text"] for m in data["messages"]] == ["first", "second"]


def test_delete_session_clears_cookies():
    client = _client()
    _bootstrap(client)
    old_session = client.cookies.get("dialogpro_session")

    resp = client.delete("/chat/session")

    assert resp.status_code == 204
    set_cookies = [h.lower() for h in resp.headers.get_list("set-cookie")]
    for name in ("dialogpro_session", "dialogpro_tokens"):
        assert any(h.startswith(name) and "max-age=0" in h for h in set_cookies)

    _bootstrap(client)
    assert client.cookies.get("dialogpro_session") != old_session


def test_redis_session_backend_keeps_only_client_id_in_cookie():
    redis = FakeRedis()
    client = _client(redis=redis, session_backend="redis")
    nonce = _bootstrap(client)

    assert client.cookies.get("dialogpro_client")
    assert client.cookies.get("dialogpro_session") is None
    assert len([k for k in redis._data if k.startswith("dialogpro:session:")]) == 2

    resp = client.post("/chat/message", json={"message": "hello", "nonce": nonce})
    assert resp.status_code == 200
    assert resp.json()["data"]["token_count"] == 4


def test_admin_endpoints_require_token():
    client = _client()

    assert client.get("/admin/status").status_code == 401
    assert client.get("/admin/status", headers=_admin_headers("wrong")).status_code == 401
    assert client.get("/admin/status", headers={"Authorization": "Basic abc"}).status_code == 401
    assert client.post("/admin/cache/clear").status_code == 401


def test_admin_endpoints_unavailable_without_configured_token():
    client = _client(admin_token="")
    resp = client.get("/admin/status", headers=_admin_headers())
    assert resp.status_code == 500
    assert resp.json()["detail"]["error"] == "admin_token_not_configured"


@pytest.mark.parametrize("status_ok, expected", [(True, True), (False, False)])
def test_admin_status_reports_connection(status_ok, expected):
    upstream = Upstream(status_ok=status_ok)
    client = _client(upstream)

    resp = client.get("/admin/status", headers=_admin_headers())

    assert resp.status_code == 200
    assert resp.json() == {"connected": expected, "configured": True}
    assert upstream.calls[0].url.path == "/api/chat/status"


def test_admin_status_accepts_api_key_header():
    client = _client()
    encoded = base64.b64encode(b"admin-secret").decode("ascii")
    resp = client.get("/admin/status", headers={"X-API-Key": encoded})
    assert resp.status_code == 200


def test_admin_cache_clear_forces_fresh_upstream_call():
    upstream = Upstream()
    client = _client(upstream)
    nonce = _bootstrap(client)
    client.post("/chat/message", json={"message": "hello", "nonce": nonce})
    client.post("/chat/message", json={"message": "hello", "nonce": nonce})
    assert len(upstream.calls) == 1

    resp = client.post("/admin/cache/clear", headers=_admin_headers())

    assert resp.status_code == 200
    assert resp.json() == {"cleared": 1}
    client.post("/chat/message", json={"message": "hello", "nonce": nonce})
    assert len(upstream.calls) == 2
