"""Tests for the /api endpoints."""

import pytest
from fastapi.testclient import TestClient

from vn_engine.app import create_app

SCRIPT = "LOC: beach\nCHA: ava/happy, ben\nAva: Hi there\nThe tide rolls in.\nSTP: left / right"


@pytest.fixture
def client(tmp_path) -> TestClient:
    return TestClient(create_app(tmp_path))


def test_health(client: TestClient):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_parse_script(client: TestClient):
    resp = client.post("/api/script/parse", json={"script": SCRIPT})
    assert resp.status_code == 200
    data = resp.json()
    assert [c["type"] for c in data["commands"]] == ["location", "characters", "dialogue", "action"]
    assert data["commands"][2] == {
        "type": "dialogue",
        "speaker": "Ava",
        "text": "Hi there",
        "mood": "happy",
        "location": "beach",
        "characters": [{"name": "ava", "mood": "happy"}, {"name": "ben", "mood": "neutral"}],
    }
    assert data["transition_points"] == ["left", "right"]
    assert data["statistics"]["dialogue_lines"] == 1
    assert data["statistics"]["action_lines"] == 1


def test_parse_requires_script(client: TestClient):
    resp = client.post("/api/script/parse", json={})
    assert resp.status_code == 422


def test_validate_script(client: TestClient):
    resp = client.post("/api/script/validate", json={"script": "LOC:\nAva:"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is False
    assert data["errors"] == ["Line 1: Empty location"]
    assert "Line 2: Empty dialogue" in data["warnings"]


def test_settings_defaults(client: TestClient):
    resp = client.get("/api/settings")
    assert resp.status_code == 200
    assert resp.json()["text_speed"] == 50
    assert resp.json()["auto_speed"] == 2000


def test_settings_patch_persists_and_clamps(client: TestClient):
    resp = client.patch("/api/settings", json={"text_speed": 500, "auto_mode": True})
    assert resp.status_code == 200
    assert resp.json()["text_speed"] == 200

    data = client.get("/api/settings").json()
    assert data["text_speed"] == 200
    assert data["auto_mode"] is True


def test_settings_patch_rejects_bad_value(client: TestClient):
    resp = client.patch("/api/settings", json={"stream_timeout": "slow"})
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith("Invalid settings")
