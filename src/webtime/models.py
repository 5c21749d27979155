"""Domain models for tracked browsing activity."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class Category(str, Enum):
    """Productivity bucket assigned to a domain."""

    WORK = "Work"
    SOCIAL = "Social"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str) -> "Category":
        cleaned = value.strip().lower()
        for category in cls:
            if category.value.lower() == cleaned:
                return category
        raise ValueError(f"Unknown category: {value!r}")


@dataclass(slots=True)
class LedgerEntry:
    """Accumulated seconds and closed segments for one (day, domain) pair."""

    seconds: int = 0
    visits: int = 0


@dataclass(slots=True)
class ActivityState:
    active_tab_id: Optional[int] = None
    active_domain: Optional[str] = None
    segment_start: Optional[datetime] = None
    is_idle: bool = False


@dataclass(slots=True, frozen=True)
class SegmentCommit:
    day_key: str
    domain: str
    seconds: int
    visits: int = 1


@dataclass(slots=True, frozen=True)
class TabActivated:
    tab_id: int
    url: Optional[str]
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class UrlChanged:
    tab_id: int
    url: Optional[str]
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class WindowFocusLost:
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class WindowFocusGained:
    tab_id: Optional[int]
    url: Optional[str]
    timestamp: datetime


IDLE_STATES = ("active", "idle", "locked")


@dataclass(slots=True, frozen=True)
class IdleStateChanged:
    state: str
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.state not in IDLE_STATES:
            raise ValueError(f"Unknown idle state: {self.state!r}")

    @property
    def is_idle(self) -> bool:
        return self.state != "active"


@dataclass(slots=True, frozen=True)
class PeriodicTick:
    timestamp: datetime


TrackerEvent = Union[
    TabActivated,
    UrlChanged,
    WindowFocusLost,
    WindowFocusGained,
    IdleStateChanged,
    PeriodicTick,
]


@dataclass(slots=True)
class DomainUsage:
    domain: str
    seconds: int
    visits: int
    category: Category


@dataclass(slots=True)
class DayRollup:
    """Derived totals for one or more days of the ledger."""

    day_key: str
    domains: list[DomainUsage] = field(default_factory=list)
    total_time: int = 0
    focus_time: int = 0
    category_totals: dict[Category, int] = field(default_factory=dict)

    @property
    def distract_time(self) -> int:
        return self.total_time - self.focus_time

    @property
    def focus_rate(self) -> int:
        if self.total_time <= 0:
            return 0
        return round_half_up(100 * self.focus_time / self.total_time)


def round_half_up(value: float) -> int:
    """Round like a browser's Math.round rather than to even."""
    return math.floor(value + 0.5)
