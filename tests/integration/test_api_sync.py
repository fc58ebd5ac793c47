"""Integration tests for /sync routes."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from promptsync.api.deps import (
    get_download_coordinator,
    get_status_reporter,
    get_upload_coordinator,
)
from promptsync.api.main import create_app
from promptsync.config import Settings
from promptsync.store.base import StoreError

U1 = {"Authorization": "Bearer token-u1"}
U2 = {"Authorization": "Bearer token-u2"}


def prompt_body(desktop_id: str = "desktop-1", version: int = 1, **overrides) -> dict:
    body = {
        "desktop_id": desktop_id,
        "title": "Test Prompt",
        "content": "Test content",
        "tags": ["test"],
        "is_public": False,
        "quick_access_key": None,
        "version": version,
        "last_modified": "2024-01-01T00:00:00Z",
    }
    body.update(overrides)
    return body


def upload_body(*prompts, session_id: str = "session-1") -> dict:
    return {"prompts": list(prompts), "sync_session_id": session_id}


@pytest.fixture(name="app")
def app_fixture(engine, clock):
    settings = Settings(
        api_tokens={"token-u1": "u1", "token-u2": "u2"},
        session_sweep_interval_minutes=0,
        _env_file=None,
    )
    return create_app(settings, engine=engine, clock=clock)


@pytest.fixture(name="client")
def client_fixture(app):
    with TestClient(app) as c:
        yield c


class TestAuthentication:
    @pytest.mark.parametrize(
        "method,path",
        [("post", "/sync/upload"), ("get", "/sync/download"), ("get", "/sync/status")],
    )
    def test_missing_token(self, client, method, path):
        kwargs = {"json": upload_body()} if method == "post" else {}
        resp = getattr(client, method)(path, **kwargs)
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Unauthorized"}

    @pytest.mark.parametrize(
        "header", ["Bearer nope", "Basic token-u1", "Bearer", "token-u1"]
    )
    def test_unrecognized_credentials(self, client, header):
        resp = client.get("/sync/status", headers={"Authorization": header})
        assert resp.status_code == 401

    def test_auth_checked_before_body(self, client):
        resp = client.post("/sync/upload", json={"prompts": "not a list"})
        assert resp.status_code == 401

    def test_rejected_upload_writes_nothing(self, client, app):
        client.post("/sync/upload", json=upload_body(prompt_body()))
        assert app.state.stores.prompts.count_for_user("u1") == 0
        assert app.state.stores.sessions.latest("u1") is None


class TestUpload:
    def test_creates_prompt(self, client):
        resp = client.post("/sync/upload", json=upload_body(prompt_body()), headers=U1)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "data": {"uploaded": 1, "updated": 0, "conflicts": [], "session_id": "session-1"},
        }

    def test_conflict_in_200_body(self, client):
        client.post("/sync/upload", json=upload_body(prompt_body()), headers=U1)
        client.post("/sync/upload", json=upload_body(prompt_body(title="v2")), headers=U1)

        resp = client.post("/sync/upload", json=upload_body(prompt_body(title="stale")), headers=U1)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["updated"] == 0
        assert data["conflicts"] == [
            {
                "desktop_id": "desktop-1",
                "web_version": 2,
                "desktop_version": 1,
                "conflict_type": "version_mismatch",
            }
        ]

    def test_empty_batch(self, client):
        resp = client.post("/sync/upload", json=upload_body(), headers=U1)
        assert resp.status_code == 200
        assert resp.json()["data"]["uploaded"] == 0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"version": 0},
            {"version": "1"},
            {"title": ""},
            {"title": "x" * 201},
            {"last_modified": "yesterday"},
            {"last_modified": "9999-12-31T23:59:59-01:00"},
            {"desktop_id": ""},
        ],
    )
    def test_invalid_prompt_is_400_with_details(self, client, app, overrides):
        resp = client.post(
            "/sync/upload", json=upload_body(prompt_body(**overrides)), headers=U1
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "Invalid request body"
        assert body["details"]
        assert all({"loc", "msg", "type"} <= set(d) for d in body["details"])
        # Validation failures never start a session
        assert app.state.stores.sessions.latest("u1") is None

    def test_one_bad_prompt_rejects_whole_batch(self, client, app):
        resp = client.post(
            "/sync/upload",
            json=upload_body(prompt_body("ok"), prompt_body("bad", version=-1)),
            headers=U1,
        )
        assert resp.status_code == 400
        assert app.state.stores.prompts.count_for_user("u1") == 0

    def test_missing_session_id(self, client):
        resp = client.post("/sync/upload", json={"prompts": []}, headers=U1)
        assert resp.status_code == 400

    def test_malformed_json(self, client):
        resp = client.post(
            "/sync/upload",
            content=b"{not json",
            headers={**U1, "Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestDownload:
    def test_full_sync_shape(self, client):
        client.post("/sync/upload", json=upload_body(prompt_body()), headers=U1)

        resp = client.get("/sync/download", headers=U1)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert set(data) == {"prompts", "total", "offset", "limit", "syncTimestamp"}
        assert data["total"] == 1
        assert data["offset"] == 0
        assert data["limit"] == 1000
        assert data["syncTimestamp"].endswith("Z")
        prompt = data["prompts"][0]
        assert prompt["desktop_id"] == "desktop-1"
        assert prompt["user_id"] == "u1"
        assert prompt["version"] == 1
        assert prompt["tags"] == ["test"]

    def test_incremental_echoes_last_sync(self, client):
        resp = client.get(
            "/sync/download", params={"lastSync": "2024-01-01T00:00:00Z"}, headers=U1
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["lastSync"] == "2024-01-01T00:00:00Z"

    @pytest.mark.parametrize(
        "last_sync", ["invalid-date", "0001-01-01T00:00:00+01:00", "9999-12-31T23:59:59-01:00"]
    )
    def test_invalid_last_sync(self, client, last_sync):
        resp = client.get("/sync/download", params={"lastSync": last_sync}, headers=U1)
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Invalid lastSync format. Expected ISO date string.",
        }

    def test_offset_beyond_any_row_is_empty_page(self, client):
        client.post("/sync/upload", json=upload_body(prompt_body()), headers=U1)
        resp = client.get(
            "/sync/download", params={"offset": str(2**64)}, headers=U1
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["prompts"] == []
        assert data["total"] == 1

    @pytest.mark.parametrize(
        "params",
        [{"offset": "-1"}, {"limit": "0"}, {"limit": "1001"}, {"offset": "x"}],
    )
    def test_invalid_pagination(self, client, params):
        resp = client.get("/sync/download", params=params, headers=U1)
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid pagination parameters")


class TestStatus:
    def test_summary(self, client):
        client.post("/sync/upload", json=upload_body(prompt_body()), headers=U1)

        resp = client.get("/sync/status", headers=U1)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total_prompts"] == 1
        assert data["pending_conflicts"] == 0
        assert data["last_session_id"] == "session-1"
        assert data["sync_enabled"] is True
        assert data["desktop_connected"] is True
        assert data["last_sync_at"].endswith("Z")

    def test_summary_for_new_user(self, client):
        data = client.get("/sync/status", headers=U2).json()["data"]
        assert data["last_sync_at"] is None
        assert data["total_prompts"] == 0

    def test_with_history(self, client):
        for n in range(3):
            client.post("/sync/upload", json=upload_body(session_id=f"s{n}"), headers=U1)

        resp = client.get("/sync/status", params={"history": "true", "limit": "2"}, headers=U1)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert set(data) == {"status", "history"}
        assert [h["session_id"] for h in data["history"]] == ["s2", "s1"]
        assert set(data["history"][0]) == {
            "session_id", "started_at", "completed_at", "uploaded", "updated", "conflicts", "status",
        }

    def test_history_flag_must_be_true(self, client):
        data = client.get("/sync/status", params={"history": "yes"}, headers=U1).json()["data"]
        assert "history" not in data
        assert "total_prompts" in data

    @pytest.mark.parametrize("limit", ["0", "101", "abc"])
    def test_invalid_history_limit(self, client, limit):
        resp = client.get("/sync/status", params={"history": "true", "limit": limit}, headers=U1)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid limit parameter. Must be between 1 and 100."


class _Broken:
    def __init__(self, exc: Exception):
        self.exc = exc

    def upload(self, *args, **kwargs):
        raise self.exc

    def download(self, *args, **kwargs):
        raise self.exc

    def status(self, *args, **kwargs):
        raise self.exc


class TestStoreFailures:
    @pytest.mark.parametrize(
        "exc", [StoreError("disk full"), SQLAlchemyError("connection reset")]
    )
    def test_generic_500_body(self, app, exc):
        broken = _Broken(exc)
        app.dependency_overrides[get_upload_coordinator] = lambda: broken
        app.dependency_overrides[get_download_coordinator] = lambda: broken
        app.dependency_overrides[get_status_reporter] = lambda: broken

        with TestClient(app) as client:
            responses = [
                client.post("/sync/upload", json=upload_body(), headers=U1),
                client.get("/sync/download", headers=U1),
                client.get("/sync/status", headers=U1),
            ]

        for resp in responses:
            assert resp.status_code == 500
            assert resp.json() == {"success": False, "error": "Internal server error"}
            assert str(exc) not in resp.text

    def test_unexpected_error_keeps_json_envelope(self, app):
        broken = _Broken(RuntimeError("bug in coordinator"))
        app.dependency_overrides[get_download_coordinator] = lambda: broken

        # Starlette re-raises after the catch-all handler has responded
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = client.get("/sync/download", headers=U1)

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Internal server error"}
        assert "bug in coordinator" not in resp.text
