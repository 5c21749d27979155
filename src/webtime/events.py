"""Wire format for browser events posted to the service or replayed from logs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from .models import (
    IdleStateChanged,
    PeriodicTick,
    TabActivated,
    TrackerEvent,
    UrlChanged,
    WindowFocusGained,
    WindowFocusLost,
)


class EventPayload(BaseModel):
    type: Literal[
        "tab_activated",
        "url_changed",
        "focus_lost",
        "focus_gained",
        "idle_changed",
        "tick",
    ]
    tab_id: Optional[int] = None
    url: Optional[str] = None
    state: Optional[Literal["active", "idle", "locked"]] = None
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    def to_event(self, now: Optional[datetime] = None) -> TrackerEvent:
        """Convert to a tracker event; raises ``ValueError`` on missing fields."""
        timestamp = self.timestamp or now or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        if self.type in ("tab_activated", "url_changed"):
            if self.tab_id is None:
                raise ValueError(f"{self.type} requires tab_id")
            if self.type == "tab_activated":
                return TabActivated(tab_id=self.tab_id, url=self.url, timestamp=timestamp)
            return UrlChanged(tab_id=self.tab_id, url=self.url, timestamp=timestamp)
        if self.type == "focus_lost":
            return WindowFocusLost(timestamp=timestamp)
        if self.type == "focus_gained":
            return WindowFocusGained(tab_id=self.tab_id, url=self.url, timestamp=timestamp)
        if self.type == "idle_changed":
            if self.state is None:
                raise ValueError("idle_changed requires state")
            return IdleStateChanged(state=self.state, timestamp=timestamp)
        return PeriodicTick(timestamp=timestamp)
