"""Domain categorization backed by a write-through cache."""

from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import timedelta
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

from .classification import ClassificationClient
from .db import fetch_categories, open_database, upsert_category
from .models import Category

logger = logging.getLogger(__name__)


class Categorizer:
    """Map domains to categories without ever blocking on the network.

    :meth:`classify` only reads the in-memory cache. :meth:`resolve_batch`
    fills the cache on a worker thread and resolves each domain at most once:
    failures are cached as ``Other`` and never retried. Manual overrides
    from :meth:`set_category` always win over automatic results.
    """

    def __init__(
        self,
        db_path: Union[Path, str],
        client: Optional[ClassificationClient] = None,
        *,
        timeout: timedelta = timedelta(seconds=15),
    ) -> None:
        self.db_path = db_path
        self.client = client
        self.timeout = timeout
        self._conn = open_database(Path(db_path), check_same_thread=False)
        self._lock = threading.Lock()
        self._inflight: set[str] = set()
        self._cache: dict[str, Category] = {}
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="categorizer")
        self._client_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="classifier")
        self._load()

    def _load(self) -> None:
        for row in fetch_categories(self._conn):
            try:
                self._cache[row["domain"]] = Category.parse(row["category"])
            except ValueError:
                logger.warning(
                    "Ignoring stored category %r for %s", row["category"], row["domain"]
                )

    def classify(self, domain: str) -> Category:
        with self._lock:
            return self._cache.get(domain, Category.OTHER)

    def categories(self) -> dict[str, Category]:
        with self._lock:
            return dict(self._cache)

    def is_cached(self, domain: str) -> bool:
        with self._lock:
            return domain in self._cache

    def is_distracting(self, domain: str) -> bool:
        return self.classify(domain) in (Category.SOCIAL, Category.ENTERTAINMENT)

    def set_category(self, domain: str, category: Union[Category, str]) -> None:
        if not isinstance(category, Category):
            category = Category.parse(category)
        with self._lock:
            self._cache[domain] = category
            self._persist(domain, category, source="manual")

    def resolve_batch(self, domains: Iterable[str]) -> "Future[dict[str, Category]]":
        """Schedule classification of uncached domains.

        The returned future yields the categories written by this call.
        """
        with self._lock:
            pending = sorted(
                {d for d in domains if d and d not in self._cache and d not in self._inflight}
            )
            self._inflight.update(pending)
        if not pending:
            done: Future[dict[str, Category]] = Future()
            done.set_result({})
            return done
        return self._executor.submit(self._resolve, pending)

    def _resolve(self, pending: list[str]) -> dict[str, Category]:
        try:
            answers = self._ask_client(pending)
            written: dict[str, Category] = {}
            with self._lock:
                for domain in pending:
                    if domain in self._cache:
                        continue
                    category = answers.get(domain, Category.OTHER)
                    self._cache[domain] = category
                    self._persist(domain, category, source="auto")
                    written[domain] = category
            logger.info("Categorized %d domains", len(written))
            return written
        finally:
            with self._lock:
                self._inflight.difference_update(pending)

    def _ask_client(self, pending: list[str]) -> Mapping[str, Category]:
        if self.client is None:
            logger.debug("No classification client configured; using Other.")
            return {}
        call = self._client_pool.submit(self.client.classify, pending)
        try:
            answers = call.result(timeout=self.timeout.total_seconds())
        except FutureTimeout:
            logger.warning(
                "Classification timed out after %ss; caching %d domains as Other.",
                self.timeout.total_seconds(),
                len(pending),
            )
            return {}
        except Exception:
            logger.exception("Classification failed; caching %d domains as Other.", len(pending))
            return {}
        if not isinstance(answers, Mapping):
            logger.warning("Classifier returned %r; ignoring.", type(answers).__name__)
            return {}
        resolved: dict[str, Category] = {}
        for domain, category in answers.items():
            try:
                resolved[domain] = (
                    category if isinstance(category, Category) else Category.parse(str(category))
                )
            except ValueError:
                logger.debug("Unusable category %r for %s", category, domain)
        return resolved

    def _persist(self, domain: str, category: Category, *, source: str) -> None:
        try:
            upsert_category(self._conn, domain, category.value, source=source)
        except sqlite3.Error:
            logger.exception("Failed to persist category for %s", domain)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._client_pool.shutdown(wait=False, cancel_futures=True)
        with self._lock:
            self._conn.close()
