import base64

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


class _FakeRuntimeService:
    def __init__(self) -> None:
        self.uploads: list[dict] = []

    def health(self):
        return {"ok": True, "source": "runtime_service", "runtime": {"started": True}}

    def start(self, **kwargs):
        _ = kwargs
        return {"ok": True}

    def session(self):
        return {"ok": True, "state": {"is_authenticated": False}}

    def register(self, *, name: str, username: str, password: str):
        return {"ok": True, "username": username, "name": name}

    def login(self, *, username: str, password: str):
        if password != "pw":
            return {"ok": False, "route": "auth", "error": "Invalid username or access token."}
        return {"ok": True, "username": username}

    def logout(self):
        return {"ok": True, "authenticated": False}

    def get_profile(self):
        return {"ok": True, "profile": {"name": "Guest"}}

    def update_profile(self, *, name: str, role: str, preferences: str, avatar: str | None = None):
        return {"ok": True, "profile": {"name": name, "role": role, "preferences": preferences, "avatar": avatar}}

    def list_files(self):
        return {"ok": True, "files": []}

    def upload_file(self, **kwargs):
        self.uploads.append(kwargs)
        return {"ok": True, "file": {"name": kwargs["name"], "size": len(kwargs["raw"])}}

    def delete_file(self, *, file_id: str):
        return {"ok": True, "file_id": file_id, "deleted": True}

    def query_file(self, *, file_name: str):
        return {"ok": True, "reply": f"query:{file_name}"}

    def visualize_file(self, *, file_name: str):
        return {"ok": True, "reply": f"chart:{file_name}"}

    def chat(self, *, message: str):
        return {"ok": True, "route": "llm.context_engine", "reply": f"echo:{message}"}

    def new_chat(self):
        return {"ok": True, "cleared": 0}

    def list_messages(self):
        return {"ok": True, "messages": []}

    def list_tasks(self):
        return {"ok": True, "tasks": []}


@pytest.fixture()
def fake_runtime(monkeypatch):
    fake = _FakeRuntimeService()
    monkeypatch.setattr("app.main.get_runtime_service", lambda: fake)
    return fake


def test_health_endpoint_uses_runtime_service(fake_runtime):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["source"] == "runtime_service"


def test_chat_endpoint(fake_runtime):
    res = client.post("/api/chat", json={"message": "hello"})
    assert res.status_code == 200
    assert res.json()["reply"] == "echo:hello"


def test_chat_endpoint_requires_message(fake_runtime):
    assert client.post("/api/chat", json={}).status_code == 422


def test_auth_endpoints(fake_runtime):
    assert client.post("/api/auth/register", json={"username": "ada", "password": "pw"}).json()["ok"] is True
    assert client.post("/api/auth/login", json={"username": "ada", "password": "pw"}).json()["ok"] is True
    bad = client.post("/api/auth/login", json={"username": "ada", "password": "x"}).json()
    assert bad["route"] == "auth"
    assert client.post("/api/auth/logout").json()["authenticated"] is False
    assert client.get("/api/session").json()["ok"] is True


def test_profile_endpoints(fake_runtime):
    assert client.get("/api/profile").json()["profile"]["name"] == "Guest"
    res = client.put("/api/profile", json={"name": "Ada", "role": "Analyst", "preferences": "Brief"})
    assert res.json()["profile"]["role"] == "Analyst"


def test_upload_decodes_base64(fake_runtime):
    payload = {"name": "a.csv", "content_base64": base64.b64encode(b"x,y\n1,2\n").decode("ascii"), "auto_summarize": False}
    res = client.post("/api/files", json=payload)
    assert res.json()["ok"] is True
    assert fake_runtime.uploads[0]["raw"] == b"x,y\n1,2\n"
    assert fake_runtime.uploads[0]["auto_summarize"] is False


def test_upload_rejects_invalid_base64(fake_runtime):
    res = client.post("/api/files", json={"name": "a.csv", "content_base64": "***"})
    assert res.json()["route"] == "validation"
    assert fake_runtime.uploads == []


def test_file_and_history_endpoints(fake_runtime):
    assert client.get("/api/files").json()["files"] == []
    assert client.delete("/api/files/file_1").json()["file_id"] == "file_1"
    assert client.post("/api/files/query", json={"file_name": "a.csv"}).json()["reply"] == "query:a.csv"
    assert client.post("/api/files/visualize", json={"file_name": "a.csv"}).json()["reply"] == "chart:a.csv"
    assert client.post("/api/chat/new").json()["cleared"] == 0
    assert client.get("/api/messages").json()["messages"] == []
    assert client.get("/api/tasks").json()["tasks"] == []


def test_index_serves_html(fake_runtime):
    res = client.get("/")
    assert res.status_code == 200
    assert "<html" in res.text.lower()
