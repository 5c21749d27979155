import threading

import pytest

from webtime.ledger import LedgerStore
from webtime.models import LedgerEntry


def test_commit_creates_then_increments(ledger):
    ledger.commit("2024-03-05", "a.com", 45, 1)
    ledger.commit("2024-03-05", "a.com", 60, 1)
    ledger.commit("2024-03-05", "b.com", 5)

    assert ledger.read("2024-03-05") == {
        "a.com": LedgerEntry(seconds=105, visits=2),
        "b.com": LedgerEntry(seconds=5, visits=1),
    }


def test_unknown_day_reads_empty(ledger):
    assert ledger.read("1999-01-01") == {}


def test_negative_increment_is_rejected(ledger):
    with pytest.raises(ValueError):
        ledger.commit("2024-03-05", "a.com", -3, 1)
    assert ledger.read("2024-03-05") == {}


def test_snapshot_matches_persisted_shape(ledger):
    ledger.commit("2024-03-04", "a.com", 10, 1)
    ledger.commit("2024-03-05", "b.com", 20, 2)

    assert ledger.snapshot() == {
        "2024-03-04": {"a.com": {"time": 10, "visits": 1}},
        "2024-03-05": {"b.com": {"time": 20, "visits": 2}},
    }
    assert ledger.days() == ["2024-03-04", "2024-03-05"]


def test_read_range_is_inclusive(ledger):
    for day in ("2024-03-01", "2024-03-02", "2024-03-03", "2024-03-04"):
        ledger.commit(day, "a.com", 100, 1)

    days = ledger.read_range("2024-03-02", "2024-03-03")
    assert sorted(days) == ["2024-03-02", "2024-03-03"]


def test_ledger_survives_reopen(db_path):
    first = LedgerStore(db_path)
    first.commit("2024-03-05", "a.com", 30, 1)
    first.close()

    second = LedgerStore(db_path)
    try:
        assert second.read("2024-03-05")["a.com"].seconds == 30
    finally:
        second.close()


def test_concurrent_commits_are_not_lost(ledger):
    def worker():
        for _ in range(50):
            ledger.commit("2024-03-05", "a.com", 2, 1)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert ledger.read("2024-03-05")["a.com"] == LedgerEntry(seconds=400, visits=200)
