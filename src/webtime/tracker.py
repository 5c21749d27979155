"""Activity tracker: turns browser events into ledger commits."""

from __future__ import annotations

import logging
import math
import sqlite3
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from .models import (
    ActivityState,
    IdleStateChanged,
    PeriodicTick,
    SegmentCommit,
    TabActivated,
    TrackerEvent,
    UrlChanged,
    WindowFocusGained,
    WindowFocusLost,
)
from .normalization import day_key_of, domain_from_url

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    def commit(
        self, day_key: str, domain: str, delta_seconds: int, delta_visits: int = 1
    ) -> None: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityTracker:
    """Owns the single :class:`ActivityState` and attributes closed segments.

    Handlers are serialized on one lock, so the periodic tick thread and
    event ingestion never mutate the state concurrently. Nothing raised by
    the ledger escapes a handler.
    """

    def __init__(
        self,
        ledger: Ledger,
        *,
        tick_interval: timedelta = timedelta(seconds=30),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ledger = ledger
        self.tick_interval = tick_interval
        self._clock = clock
        self._state = ActivityState()
        self._lock = threading.Lock()
        self._latest_event: Optional[datetime] = None

    def snapshot(self) -> ActivityState:
        with self._lock:
            return replace(self._state)

    def handle(self, event: TrackerEvent) -> Optional[SegmentCommit]:
        """Dispatch a normalized event to its transition."""
        if isinstance(event, TabActivated):
            return self.on_tab_activated(event.tab_id, event.url, event.timestamp)
        if isinstance(event, UrlChanged):
            return self.on_url_changed(event.tab_id, event.url, event.timestamp)
        if isinstance(event, WindowFocusLost):
            return self.on_window_focus_lost(event.timestamp)
        if isinstance(event, WindowFocusGained):
            self.on_window_focus_gained(event.tab_id, event.url, event.timestamp)
            return None
        if isinstance(event, IdleStateChanged):
            if event.is_idle:
                return self.on_idle_entered(event.timestamp)
            self.on_idle_exited(event.timestamp)
            return None
        if isinstance(event, PeriodicTick):
            return self.on_periodic_tick(event.timestamp)
        raise TypeError(f"Unsupported event: {event!r}")

    def on_tab_activated(
        self, tab_id: int, url: Optional[str], now: Optional[datetime] = None
    ) -> Optional[SegmentCommit]:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            commit = self._record_current_segment(now)
            self._state.active_tab_id = tab_id
            self._state.active_domain = domain_from_url(url)
            self._state.segment_start = now
        return commit

    def on_url_changed(
        self, tab_id: int, url: Optional[str], now: Optional[datetime] = None
    ) -> Optional[SegmentCommit]:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            if tab_id != self._state.active_tab_id:
                logger.debug("Ignoring URL change on background tab %s", tab_id)
                return None
            commit = self._record_current_segment(now)
            self._state.active_domain = domain_from_url(url)
            self._state.segment_start = now
        return commit

    def on_window_focus_lost(self, now: Optional[datetime] = None) -> Optional[SegmentCommit]:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            commit = self._record_current_segment(now)
            self._state.segment_start = None
        return commit

    def on_window_focus_gained(
        self, tab_id: Optional[int], url: Optional[str], now: Optional[datetime] = None
    ) -> None:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            if tab_id is None and url is None:
                # No active tab in the focused window; keep the previous target.
                return
            self._state.active_tab_id = tab_id
            self._state.active_domain = domain_from_url(url)
            self._state.segment_start = now

    def on_idle_entered(self, now: Optional[datetime] = None) -> Optional[SegmentCommit]:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            commit = self._record_current_segment(now)
            self._state.is_idle = True
        return commit

    def on_idle_exited(self, now: Optional[datetime] = None) -> None:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            self._state.is_idle = False
            self._state.segment_start = now

    def on_periodic_tick(self, now: Optional[datetime] = None) -> Optional[SegmentCommit]:
        now = now or self._clock()
        with self._lock:
            now = self._not_before_latest_event(now)
            if self._state.is_idle or self._state.segment_start is None:
                return None
            return self._record_current_segment(now)

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Fire periodic ticks until the provided event is set."""
        interval = self.tick_interval.total_seconds()
        logger.info("Tick loop started; flushing every %.0fs", interval)
        # Sleep in an interruptible manner.
        while not stop_event.wait(interval):
            self.on_periodic_tick()
        logger.info("Tick loop stopped.")

    def _not_before_latest_event(self, now: datetime) -> datetime:
        """Clamp a late event's timestamp to the latest boundary already seen.

        Server ticks and client events carry different clocks, so an event
        can arrive stamped before the segment it closes. Letting a boundary
        move backwards would attribute the same span twice.
        """
        latest = self._latest_event
        if latest is not None and now < latest:
            logger.debug("Event at %s predates %s; clamping", now.isoformat(), latest.isoformat())
            return latest
        self._latest_event = now
        return now

    def _record_current_segment(self, now: datetime) -> Optional[SegmentCommit]:
        """Close the open segment at ``now`` and restart it from ``now``."""
        state = self._state
        commit: Optional[SegmentCommit] = None
        if state.segment_start is not None and not state.is_idle:
            elapsed = math.floor((now - state.segment_start).total_seconds())
            if state.active_domain is None:
                logger.debug("Dropping %ss for a URL without a domain", elapsed)
            elif elapsed >= 1:
                commit = SegmentCommit(day_key_of(now), state.active_domain, elapsed)
                commit = self._commit(commit)
        state.segment_start = now
        return commit

    def _commit(self, commit: SegmentCommit) -> Optional[SegmentCommit]:
        try:
            self.ledger.commit(commit.day_key, commit.domain, commit.seconds, commit.visits)
        except (sqlite3.Error, OSError):
            logger.exception(
                "Failed to persist %ss for %s; continuing.", commit.seconds, commit.domain
            )
            return None
        return commit
