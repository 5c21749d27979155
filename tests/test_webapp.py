import pytest
from fastapi.testclient import TestClient

from conftest import FakeClassifier
from webtime.config import API_KEY_ENV
from webtime.models import Category
from webtime.service import TrackingService
from webtime.webapp import create_app


@pytest.fixture
def classifier(work_answers):
    return FakeClassifier(answers=work_answers)


@pytest.fixture
def client(db_path, classifier, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    service = TrackingService(db_path, client=classifier)
    app = create_app(service=service, run_ticks=False)
    with TestClient(app) as test_client:
        yield test_client


def post(client, **payload):
    response = client.post("/api/events", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def test_events_build_the_ledger(client):
    post(client, type="tab_activated", tab_id=1, url="https://github.com/", timestamp="2024-03-05T10:00:00Z")
    body = post(client, type="idle_changed", state="idle", timestamp="2024-03-05T10:00:45Z")
    assert body["committed"] == {"day": "2024-03-05", "domain": "github.com", "seconds": 45, "visits": 1}
    assert body["is_idle"] is True

    post(client, type="idle_changed", state="active", timestamp="2024-03-05T10:05:00Z")
    post(client, type="tick", timestamp="2024-03-05T10:06:00Z")

    data = client.get("/api/tracking-data").json()["trackingData"]
    assert data == {"2024-03-05": {"github.com": {"time": 105, "visits": 2}}}


def test_summary_reports_rollup_goal_and_streak(client):
    client.put("/api/categories/github.com", json={"category": "Work"})
    client.put("/api/categories/reddit.com", json={"category": "Social"})
    post(client, type="tab_activated", tab_id=1, url="https://github.com/", timestamp="2024-03-04T09:00:00Z")
    post(client, type="tab_activated", tab_id=2, url="https://reddit.com/", timestamp="2024-03-04T10:00:00Z")
    post(client, type="focus_lost", timestamp="2024-03-04T10:20:00Z")
    post(client, type="focus_gained", tab_id=1, url="https://github.com/", timestamp="2024-03-05T08:00:00Z")
    post(client, type="focus_lost", timestamp="2024-03-05T10:00:00Z")

    body = client.get("/api/summary", params={"date": "2024-03-05"}).json()

    assert body["date"] == "2024-03-05"
    assert body["totals"]["total_seconds"] == 7200
    assert body["totals"]["focus_rate"] == 100
    assert body["goal"] == {"daily_goal_seconds": 14400, "progress": 50}
    assert body["streak"] == 1
    assert body["pending_categories"] == []
    assert body["domains"][0] == {
        "domain": "github.com",
        "seconds": 7200,
        "visits": 1,
        "category": "Work",
    }


def test_overview_spans_days(client):
    post(client, type="tab_activated", tab_id=1, url="https://github.com/", timestamp="2024-03-04T09:00:00Z")
    post(client, type="tick", timestamp="2024-03-04T09:10:00Z")
    post(client, type="tick", timestamp="2024-03-05T09:10:00Z")

    body = client.get("/api/overview", params={"start": "2024-03-04", "end": "2024-03-05"}).json()
    assert body["totals"]["total_seconds"] == 600 + 86400

    bad = client.get("/api/overview", params={"start": "2024-03-05", "end": "2024-03-04"})
    assert bad.status_code == 400


def test_invalid_requests_are_rejected(client):
    assert client.post("/api/events", json={"type": "tab_activated"}).status_code == 400
    assert client.post("/api/events", json={"type": "idle_changed"}).status_code == 400
    assert client.post("/api/events", json={"type": "reload"}).status_code == 422
    assert client.get("/api/summary", params={"date": "05/03/2024"}).status_code == 400
    assert client.put("/api/categories/a.com", json={"category": "Gaming"}).status_code == 422


def test_resolve_endpoint_waits_for_classification(client, classifier):
    body = client.post(
        "/api/categories/resolve",
        json={"domains": ["github.com", "reddit.com", "example.org"], "wait_seconds": 5},
    ).json()

    assert body["resolved"] == {"github.com": "Work", "reddit.com": "Social", "example.org": "Other"}
    assert classifier.calls == [["example.org", "github.com", "reddit.com"]]

    categories = client.get("/api/categories").json()
    assert categories["domainCategories"]["github.com"] == Category.WORK.value
    assert categories["categories"] == ["Work", "Social", "Entertainment", "Other"]


def test_settings_update_and_focus_rules(client):
    assert client.get("/api/focus/rules").json() == {"focusModeEnabled": False, "rules": []}

    body = client.patch(
        "/api/settings", json={"focusModeEnabled": True, "dailyGoal": 7200, "groqApiKey": "k"}
    ).json()
    assert body == {
        "idleThreshold": 60,
        "dailyGoal": 7200,
        "focusModeEnabled": True,
        "hasApiKey": True,
    }

    rules = client.get("/api/focus/rules").json()["rules"]
    assert len(rules) == 13
    check = client.get("/api/focus/check", params=[("domain", "reddit.com"), ("domain", "github.com")])
    assert check.json()["blocked"] == {"reddit.com": True, "github.com": False}

    assert client.patch("/api/settings", json={"idleThreshold": 1}).status_code == 422


def test_status_reports_tracker_state(client):
    post(client, type="tab_activated", tab_id=9, url="https://www.github.com/", timestamp="2024-03-05T10:00:00Z")
    status = client.get("/api/status").json()
    assert status["active_tab_id"] == 9
    assert status["active_domain"] == "github.com"
    assert status["ticks_running"] is False
    assert status["segment_start"].startswith("2024-03-05T10:00:00")
