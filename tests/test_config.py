from datetime import timedelta

from webtime.config import API_KEY_ENV, TrackerSettings, load_settings, save_settings
from webtime.db import open_database


def test_defaults(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    settings = TrackerSettings.from_intervals()
    assert settings.to_dict() == {
        "idleThreshold": 60,
        "dailyGoal": 14400,
        "focusModeEnabled": False,
        "groqApiKey": "",
    }
    assert settings.tick_interval == timedelta(seconds=30)


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV, "from-env")
    assert TrackerSettings.from_intervals().api_key == "from-env"


def test_settings_round_trip_through_database(db_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    conn = open_database(db_path)
    try:
        assert load_settings(conn).daily_goal_seconds == 14400
        updated = TrackerSettings().updated({"dailyGoal": 7200, "focusModeEnabled": True})
        save_settings(conn, updated)

        loaded = load_settings(conn)
        assert loaded.daily_goal_seconds == 7200
        assert loaded.focus_mode_enabled is True
        assert loaded.idle_threshold == timedelta(seconds=60)
    finally:
        conn.close()
