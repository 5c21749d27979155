"""Totals, focus rate, goal progress and streaks derived from the ledger."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Iterable, Mapping

from .categorizer import Categorizer
from .ledger import LedgerStore
from .models import Category, DayRollup, DomainUsage, LedgerEntry, round_half_up
from .normalization import BOOKKEEPING_DOMAIN, parse_day_key, should_ignore_domain

Classifier = Callable[[str], Category]
DayReader = Callable[[str], Mapping[str, LedgerEntry]]

STREAK_MIN_SECONDS = 1800
STREAK_MIN_FOCUS_PERCENT = 50
STREAK_MAX_LOOKBACK_DAYS = 365


def rollup(
    day_key: str,
    entries: Mapping[str, LedgerEntry],
    classify: Classifier,
    ignore: Callable[[str], bool] = should_ignore_domain,
) -> DayRollup:
    """Pair each counted domain of a day with its category and sum it up."""
    result = DayRollup(day_key=day_key)
    totals: defaultdict[Category, int] = defaultdict(int)
    for domain, entry in entries.items():
        if domain == BOOKKEEPING_DOMAIN or ignore(domain):
            continue
        category = classify(domain)
        result.domains.append(
            DomainUsage(domain=domain, seconds=entry.seconds, visits=entry.visits, category=category)
        )
        totals[category] += entry.seconds
        result.total_time += entry.seconds
        if category is Category.WORK:
            result.focus_time += entry.seconds
    result.domains.sort(key=lambda usage: (-usage.seconds, usage.domain))
    result.category_totals = {category: totals.get(category, 0) for category in Category}
    return result


def rollup_range(
    label: str,
    days: Iterable[Mapping[str, LedgerEntry]],
    classify: Classifier,
    ignore: Callable[[str], bool] = should_ignore_domain,
) -> DayRollup:
    """Merge several days of ledger entries into a single rollup."""
    merged: dict[str, LedgerEntry] = {}
    for entries in days:
        for domain, entry in entries.items():
            total = merged.setdefault(domain, LedgerEntry())
            total.seconds += entry.seconds
            total.visits += entry.visits
    return rollup(label, merged, classify, ignore)


def goal_progress(focus_time: float, daily_goal: float) -> int:
    """Percent of the daily focus goal reached, clamped to 100."""
    if daily_goal <= 0:
        return 100
    return min(100, round_half_up(100 * focus_time / daily_goal))


def qualifies_for_streak(day: DayRollup) -> bool:
    if day.total_time < STREAK_MIN_SECONDS:
        return False
    return day.focus_time * 100 >= STREAK_MIN_FOCUS_PERCENT * day.total_time


def streak(
    read_day: DayReader,
    today: date,
    classify: Classifier,
    ignore: Callable[[str], bool] = should_ignore_domain,
) -> int:
    """Count consecutive qualifying days immediately before ``today``.

    The walk stops at the first day that has no ledger entries, tracked
    less than half an hour, or spent less than half of it on Work.
    """
    count = 0
    for offset in range(1, STREAK_MAX_LOOKBACK_DAYS + 1):
        day_key = (today - timedelta(days=offset)).isoformat()
        entries = read_day(day_key)
        if not entries:
            break
        if not qualifies_for_streak(rollup(day_key, entries, classify, ignore)):
            break
        count += 1
    return count


class AnalyticsEngine:
    """Bind the pure analytics to a ledger and a categorizer."""

    def __init__(self, ledger: LedgerStore, categorizer: Categorizer) -> None:
        self.ledger = ledger
        self.categorizer = categorizer

    def rollup(self, day_key: str) -> DayRollup:
        return rollup(day_key, self.ledger.read(day_key), self.categorizer.classify)

    def rollup_range(self, start_key: str, end_key: str) -> DayRollup:
        days = self.ledger.read_range(start_key, end_key)
        return rollup_range(
            f"{start_key}..{end_key}", days.values(), self.categorizer.classify
        )

    def goal_progress(self, day_key: str, daily_goal_seconds: int) -> int:
        return goal_progress(self.rollup(day_key).focus_time, daily_goal_seconds)

    def streak(self, today: date | str) -> int:
        if isinstance(today, str):
            today = parse_day_key(today)
        return streak(self.ledger.read, today, self.categorizer.classify)
