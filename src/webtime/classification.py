"""Client for the hosted chat-completion service that classifies domains."""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Protocol, Sequence

import requests

from .models import Category

logger = logging.getLogger(__name__)

GROQ_CHAT_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "llama-3.1-8b-instant"

_LINE_PATTERN = re.compile(r"^(.+?):\s*(Work|Social|Entertainment|Other)", re.IGNORECASE)
_NUMBERING_PATTERN = re.compile(r"^\d+\.\s*")

_BATCH_PROMPT = """Categorize each website domain into exactly ONE category.

Domains:
{domains}

Categories:
- Work: coding, documentation, productivity tools, professional sites
- Social: social media, messaging, networking
- Entertainment: videos, streaming, games, music, news, shopping
- Other: anything that doesn't fit above

Reply in this exact format, one per line:
domain1: Category
domain2: Category
...

Only use: Work, Social, Entertainment, or Other."""


class ClassificationClient(Protocol):
    """Anything that can assign categories to a batch of domains.

    Domains missing from the returned mapping are treated as unclassified.
    Implementations may raise; callers own the fallback.
    """

    def classify(self, domains: Sequence[str]) -> Mapping[str, Category]: ...


class GroqClassifier:
    """Classify domains with one chat-completion request per batch."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        url: str = GROQ_CHAT_URL,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def classify(self, domains: Sequence[str]) -> dict[str, Category]:
        if not domains:
            return {}
        prompt = _BATCH_PROMPT.format(
            domains="\n".join(f"{index}. {domain}" for index, domain in enumerate(domains, 1))
        )
        resp = self._session.post(
            self.url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": max(200, 20 * len(domains)),
                "temperature": 0,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        text = _message_content(resp.json())
        results = parse_batch_response(text, domains)
        logger.debug("Classifier answered %d of %d domains", len(results), len(domains))
        return results


def _message_content(payload: object) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


def parse_batch_response(text: str, domains: Sequence[str]) -> dict[str, Category]:
    """Map ``domain: Category`` lines back onto the requested domains.

    Model output may echo numbering or a slightly different spelling of the
    domain. Exact matches win; otherwise a line goes to the first unanswered
    domain that contains it or is contained by it.
    """
    results: dict[str, Category] = {}
    for line in text.splitlines():
        match = _LINE_PATTERN.match(line.strip())
        if not match:
            continue
        answered = _NUMBERING_PATTERN.sub("", match.group(1).strip()).strip()
        if not answered:
            continue
        category = Category.parse(match.group(2))
        if answered in domains:
            results[answered] = category
            continue
        for domain in domains:
            if domain not in results and (answered in domain or domain in answered):
                results[domain] = category
                break
    return results
