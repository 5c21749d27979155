"""Focus mode: which domains to block while it is enabled."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

DISTRACTING_DOMAINS: tuple[str, ...] = (
    "twitter.com",
    "x.com",
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "reddit.com",
    "tiktok.com",
    "youtube.com",
    "netflix.com",
    "twitch.tv",
    "spotify.com",
    "hulu.com",
    "disneyplus.com",
)


def is_blocked(
    domain: str,
    enabled: bool,
    blocklist: Sequence[str] = DISTRACTING_DOMAINS,
) -> bool:
    """True when focus mode is on and ``domain`` is (a subdomain of) a listed one."""
    if not enabled or not domain:
        return False
    host = domain.lower()
    return any(host == blocked or host.endswith("." + blocked) for blocked in blocklist)


def blocking_decisions(
    domains: Iterable[str],
    enabled: bool,
    blocklist: Sequence[str] = DISTRACTING_DOMAINS,
) -> dict[str, bool]:
    return {domain: is_blocked(domain, enabled, blocklist) for domain in domains}


def build_block_rules(
    enabled: bool, blocklist: Sequence[str] = DISTRACTING_DOMAINS
) -> list[dict[str, Any]]:
    """Declarative network rules for the browser to install.

    Rule ids start at 1. An empty list means every existing rule should be
    removed.
    """
    if not enabled:
        return []
    return [
        {
            "id": index,
            "priority": 1,
            "action": {"type": "block"},
            "condition": {
                "urlFilter": f"*://*.{domain}/*",
                "resourceTypes": ["main_frame"],
            },
        }
        for index, domain in enumerate(blocklist, 1)
    ]
