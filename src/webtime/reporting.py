"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import date

from .analytics import AnalyticsEngine, goal_progress
from .models import Category


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, analytics: AnalyticsEngine, daily_goal_seconds: int) -> None:
        self.analytics = analytics
        self.daily_goal_seconds = daily_goal_seconds

    def print_daily_summary(self, day: date, *, top: int = 5) -> None:
        day_key = day.isoformat()
        summary = self.analytics.rollup(day_key)
        if not summary.domains:
            print("No browsing recorded for the selected day.")
            return

        progress = goal_progress(summary.focus_time, self.daily_goal_seconds)
        print(f"Summary for {day_key}")
        print("-" * 40)
        print(f"Total time:    {format_duration(summary.total_time)}")
        print(f"Focus time:    {format_duration(summary.focus_time)} ({summary.focus_rate}%)")
        print(f"Distractions:  {format_duration(summary.distract_time)}")
        print(
            f"Daily goal:    {progress}% of {format_compact(self.daily_goal_seconds)}"
        )
        print(f"Streak:        {self.analytics.streak(day)} days")
        print()

        print("By category:")
        for category in Category:
            seconds = summary.category_totals.get(category, 0)
            if seconds:
                print(f"  {category.value:<14} {format_duration(seconds)}")

        print()
        print("Top domains:")
        for usage in summary.domains[:top]:
            print(
                f"  {usage.domain[:30]:<30} {usage.category.value:<14} "
                f"{format_duration(usage.seconds)} ({usage.visits} visits)"
            )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_compact(seconds: float) -> str:
    """Short label used next to goals, e.g. ``45s``, ``12m`` or ``1h 5m``."""
    if not seconds or seconds < 1:
        return "0m"
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"
