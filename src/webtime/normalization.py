"""Utilities to derive attribution keys from browser URLs."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from urllib.parse import urlsplit

BOOKKEEPING_DOMAIN = "_idle"

_WWW_PREFIX = "www."

_IGNORED_DOMAINS: tuple[str, ...] = (
    "newtab",
    "extensions",
    "settings",
    "history",
    "bookmarks",
    "downloads",
    "chrome",
    "about",
    "blank",
    "devtools",
    "chrome-extension",
)

_IGNORED_PREFIXES: tuple[str, ...] = ("chrome", "about", "edge", "brave")


def domain_from_url(url: Optional[str]) -> Optional[str]:
    """Return the host of ``url`` without a leading ``www.`` label.

    The host keeps its original case and any port. ``None`` is returned for
    URLs that have no network location or cannot be parsed at all.
    """
    if not url:
        return None
    try:
        netloc = urlsplit(url.strip()).netloc
    except ValueError:
        return None
    host = netloc.rpartition("@")[2]
    if host.startswith(_WWW_PREFIX):
        host = host[len(_WWW_PREFIX):]
    return host or None


def day_key_of(moment: datetime) -> str:
    """UTC calendar date of ``moment`` as ``YYYY-MM-DD``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date().isoformat()


def parse_day_key(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def should_ignore_domain(domain: Optional[str]) -> bool:
    """True for browser-internal pages that never count as browsing."""
    if not domain:
        return True
    if domain.startswith(_IGNORED_PREFIXES):
        return True
    return any(ignored in domain for ignored in _IGNORED_DOMAINS)
