"""Configuration models and helpers for the tracker."""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any, Mapping

from .db import load_setting, save_setting

API_KEY_ENV = "WEBTIME_GROQ_API_KEY"
SETTINGS_KEY = "settings"


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for tracking, goals and classification."""

    idle_threshold: timedelta = timedelta(seconds=60)
    daily_goal: timedelta = timedelta(hours=4)
    focus_mode_enabled: bool = False
    tick_interval: timedelta = timedelta(seconds=30)
    classification_timeout: timedelta = timedelta(seconds=15)
    api_key: str = ""

    @classmethod
    def from_intervals(
        cls,
        idle_seconds: float = 60.0,
        goal_hours: float = 4.0,
        tick_seconds: float = 30.0,
        timeout_seconds: float = 15.0,
        focus_mode_enabled: bool = False,
        api_key: str | None = None,
    ) -> "TrackerSettings":
        return cls(
            idle_threshold=timedelta(seconds=idle_seconds),
            daily_goal=timedelta(hours=goal_hours),
            focus_mode_enabled=focus_mode_enabled,
            tick_interval=timedelta(seconds=tick_seconds),
            classification_timeout=timedelta(seconds=timeout_seconds),
            api_key=api_key if api_key is not None else os.environ.get(API_KEY_ENV, ""),
        )

    @property
    def daily_goal_seconds(self) -> int:
        return int(self.daily_goal.total_seconds())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted ``settings`` record."""
        return {
            "idleThreshold": int(self.idle_threshold.total_seconds()),
            "dailyGoal": self.daily_goal_seconds,
            "focusModeEnabled": self.focus_mode_enabled,
            "groqApiKey": self.api_key,
        }

    def updated(self, values: Mapping[str, Any]) -> "TrackerSettings":
        """Return a copy with the persisted-record ``values`` applied."""
        changes: dict[str, Any] = {}
        if values.get("idleThreshold") is not None:
            changes["idle_threshold"] = timedelta(seconds=float(values["idleThreshold"]))
        if values.get("dailyGoal") is not None:
            changes["daily_goal"] = timedelta(seconds=float(values["dailyGoal"]))
        if values.get("focusModeEnabled") is not None:
            changes["focus_mode_enabled"] = bool(values["focusModeEnabled"])
        if values.get("groqApiKey") is not None:
            changes["api_key"] = str(values["groqApiKey"])
        return replace(self, **changes)


def load_settings(
    conn: sqlite3.Connection, defaults: TrackerSettings | None = None
) -> TrackerSettings:
    base = defaults or TrackerSettings.from_intervals()
    stored = load_setting(conn, SETTINGS_KEY)
    if not isinstance(stored, dict):
        return base
    settings = base.updated(stored)
    if not settings.api_key:
        settings.api_key = os.environ.get(API_KEY_ENV, "")
    return settings


def save_settings(conn: sqlite3.Connection, settings: TrackerSettings) -> None:
    save_setting(conn, SETTINGS_KEY, settings.to_dict())
