"""Wiring of tracker, ledger, categorizer and settings around one database."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

from .analytics import AnalyticsEngine
from .categorizer import Categorizer
from .classification import ClassificationClient, GroqClassifier
from .config import TrackerSettings, load_settings, save_settings
from .db import open_database
from .ledger import LedgerStore
from .tracker import ActivityTracker

logger = logging.getLogger(__name__)


class TickRunner:
    """Manage the periodic tick loop in a background thread."""

    def __init__(self, tracker: ActivityTracker) -> None:
        self._tracker = tracker
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._tracker.run_until_stopped,
                args=(stop_event,),
                name="webtime-tick",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Tick background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Tick background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())


def build_client(settings: TrackerSettings) -> Optional[ClassificationClient]:
    if not settings.api_key:
        return None
    return GroqClassifier(
        settings.api_key, timeout=settings.classification_timeout.total_seconds()
    )


class TrackingService:
    """Everything the tracker needs, sharing a single SQLite file."""

    def __init__(
        self,
        db_path: Path,
        settings: Optional[TrackerSettings] = None,
        *,
        client: Optional[ClassificationClient] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self._settings_conn = open_database(self.db_path, check_same_thread=False)
        self._settings_lock = threading.Lock()
        self.settings = load_settings(self._settings_conn, settings)
        self.ledger = LedgerStore(self.db_path)
        self.categorizer = Categorizer(
            self.db_path,
            client if client is not None else build_client(self.settings),
            timeout=self.settings.classification_timeout,
        )
        self.tracker = ActivityTracker(self.ledger, tick_interval=self.settings.tick_interval)
        self.analytics = AnalyticsEngine(self.ledger, self.categorizer)
        self.ticks = TickRunner(self.tracker)

    def update_settings(self, values: Mapping[str, Any]) -> TrackerSettings:
        with self._settings_lock:
            updated = self.settings.updated(values)
            save_settings(self._settings_conn, updated)
            if updated.api_key != self.settings.api_key:
                self.categorizer.client = build_client(updated)
            self.settings = updated
        logger.info("Settings updated: %s", sorted(values))
        return updated

    def close(self) -> None:
        self.ticks.stop()
        self.categorizer.close()
        self.ledger.close()
        with self._settings_lock:
            self._settings_conn.close()
