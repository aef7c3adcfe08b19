import time

import pytest
from fastapi.testclient import TestClient

from adstudio import main
from adstudio.config import Settings, get_settings
from adstudio.storage.repository import UserRecordRepository

HEADERS = {"X-User-ID": "tester@example.com"}
SCRIPT_FORM = {
    "title": "Summer sale",
    "mode": "script",
    "ratio": "9:16",
    "voice_id": "aria",
    "avatar_id": "maya",
    "script": "Everything is 30% off this weekend.",
}


def _client(monkeypatch, **overrides):
    settings = Settings(
        time_scale=0.001,
        stub_latency_min_seconds=0,
        stub_latency_max_seconds=0.01,
        openrouter_api_key="",
        **overrides,
    )
    monkeypatch.setattr(main, "_repo", UserRecordRepository())
    monkeypatch.setattr(main, "_service", None)
    main.app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(main.app)


@pytest.fixture
def client(monkeypatch):
    with _client(monkeypatch) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


def _wait_for(client, predicate):
    batch = None
    for _ in range(100):
        resp = client.get("/ads/batch", headers=HEADERS)
        assert resp.status_code == 200
        batch = resp.json()
        if predicate(batch):
            return batch
        time.sleep(0.05)
    raise AssertionError(f"batch never reached the expected state: {batch}")


def test_ad_generation_flow(client):
    user_resp = client.post(
        "/users",
        json={"name": "Tess", "email": "tester@example.com", "picture": "https://img/tess.png"},
    )
    assert user_resp.status_code == 200
    assert user_resp.json()["user"]["credits"] == 100

    voices = client.get("/voices").json()["items"]
    avatars = client.get("/avatars").json()["items"]
    assert voices and avatars

    check = client.post("/ads:validate", json=SCRIPT_FORM, headers=HEADERS)
    assert check.status_code == 200
    assert check.json()["ok"] is True

    create_resp = client.post("/ads", json=SCRIPT_FORM, headers=HEADERS)
    assert create_resp.status_code == 202
    created = create_resp.json()
    assert created["status"] == "rendering"
    assert len(created["tasks"]) == 3
    assert all(task["phase"] == "queued" and task["progress"] == 5 for task in created["tasks"])

    batch = _wait_for(
        client,
        lambda body: body["tasks"] and all(task["phase"] == "downloadable" for task in body["tasks"]),
    )
    assert batch["status"] == "completed"
    assert batch["download_all_enabled"] is True
    assert batch["credits"] == 70

    manifest = client.get("/ads/manifest", headers=HEADERS)
    assert manifest.status_code == 200
    assert manifest.text.splitlines() == [task["url"] for task in batch["tasks"]]

    credits = client.get("/credits", headers=HEADERS).json()
    assert credits == {"credits": 70, "batch_cost": 30, "low_balance_floor": 10}

    reset = client.post("/ads:reset", headers=HEADERS)
    assert reset.status_code == 200
    assert reset.json()["tasks"] == []
    assert client.post("/ads:reset", headers=HEADERS).json()["tasks"] == []
    assert client.get("/ads/manifest", headers=HEADERS).status_code == 409


def test_invalid_form_is_rejected(client):
    resp = client.post("/ads", json={**SCRIPT_FORM, "script": "  "}, headers=HEADERS)
    assert resp.status_code == 422
    body = resp.json()
    assert [issue["code"] for issue in body["issues"]] == ["script_required"]
    assert client.get("/ads/batch", headers=HEADERS).json()["tasks"] == []


def test_photos_need_three_images(client):
    form = {"title": "Collection", "mode": "photos", "voice_id": "leo", "images": ["a.jpg", "b.jpg"]}
    resp = client.post("/ads:validate", json=form, headers=HEADERS)
    assert resp.json()["ok"] is False
    assert [issue["code"] for issue in resp.json()["issues"]] == ["images_count"]


def test_low_balance_returns_payment_required(monkeypatch):
    with _client(monkeypatch, default_credits=5) as client:
        resp = client.post("/ads", json=SCRIPT_FORM, headers=HEADERS)
        assert resp.status_code == 402
        assert resp.json()["insufficient_credits"] is True
    main.app.dependency_overrides.clear()


def test_failing_backend_leaves_credits_untouched(monkeypatch):
    with _client(monkeypatch, stub_failure_rate=1.0) as client:
        assert client.post("/ads", json=SCRIPT_FORM, headers=HEADERS).status_code == 202
        batch = _wait_for(client, lambda body: body["status"] == "failed")
        assert batch["credits"] == 100
        assert batch["error"]
        assert all(task["url"] is None for task in batch["tasks"])
        assert all(task["phase"] != "downloadable" for task in batch["tasks"])
    main.app.dependency_overrides.clear()


def test_script_draft_without_provider_keeps_current_script(client):
    resp = client.post(
        "/scripts:draft",
        json={"topic": "electric bikes", "current_script": "my draft"},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json() == {"script": "my draft", "drafted": False}


def test_session_routes_require_user_header(client):
    assert client.get("/ads/batch").status_code == 401
    assert client.get("/users/me").status_code == 401
    assert client.get("/users/me", headers={"X-User-ID": "nobody@example.com"}).status_code == 404
