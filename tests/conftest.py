import sqlite3
import threading
from datetime import datetime, timedelta, timezone

import pytest

from webtime.categorizer import Categorizer
from webtime.ledger import LedgerStore
from webtime.models import Category


BASE_TIME = datetime(2024, 3, 5, 10, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


class RecordingLedger:
    def __init__(self) -> None:
        self.commits: list[tuple[str, str, int, int]] = []

    def commit(self, day_key, domain, delta_seconds, delta_visits=1):
        self.commits.append((day_key, domain, delta_seconds, delta_visits))


class FailingLedger:
    def __init__(self) -> None:
        self.attempts = 0

    def commit(self, day_key, domain, delta_seconds, delta_visits=1):
        self.attempts += 1
        raise sqlite3.OperationalError("database is locked")


class FakeClassifier:
    def __init__(self, answers=None, error=None, release=None) -> None:
        self.answers = answers or {}
        self.error = error
        self.release = release
        self.calls: list[list[str]] = []

    def classify(self, domains):
        self.calls.append(list(domains))
        if self.release is not None:
            self.release.wait(5)
        if self.error is not None:
            raise self.error
        return {d: self.answers[d] for d in domains if d in self.answers}


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "webtime.sqlite3"


@pytest.fixture
def ledger(db_path):
    store = LedgerStore(db_path)
    yield store
    store.close()


@pytest.fixture
def recording_ledger():
    return RecordingLedger()


@pytest.fixture
def make_categorizer(db_path):
    created: list[Categorizer] = []

    def factory(client=None, timeout=timedelta(seconds=5)):
        categorizer = Categorizer(db_path, client, timeout=timeout)
        created.append(categorizer)
        return categorizer

    yield factory
    for categorizer in created:
        categorizer.close()


@pytest.fixture
def work_answers():
    return {
        "github.com": Category.WORK,
        "reddit.com": Category.SOCIAL,
        "youtube.com": Category.ENTERTAINMENT,
    }


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()
