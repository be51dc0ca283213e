from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path
import random
from threading import Lock

from proxy_bench.config.errors import ConfigurationError
from proxy_bench.config.io import read_text_lines

logger = logging.getLogger(__name__)

DEFAULT_QUERIES: tuple[str, ...] = (
    "best coffee makers",
    "javascript array sort",
    "weather in san francisco",
    "buy iphone 15",
    "node.js playwright guide",
    "pizza near me",
    "latest tech news",
    "python dataclass",
    "nba standings",
    "typescript enums",
)


class QuerySource:
    """Thread-safe random picker over a fixed, non-empty query list."""

    def __init__(self, queries: Sequence[str] | None = None, seed: int | None = None) -> None:
        items = tuple(query.strip() for query in (queries if queries is not None else DEFAULT_QUERIES))
        items = tuple(query for query in items if query)
        if not items:
            raise ConfigurationError("Query list is empty.")
        self._queries = items
        self._rng = random.Random(seed)
        self._lock = Lock()

    @property
    def queries(self) -> tuple[str, ...]:
        return self._queries

    def __len__(self) -> int:
        return len(self._queries)

    def next(self) -> str:
        with self._lock:
            return self._rng.choice(self._queries)


def load_queries(path: str | Path | None, seed: int | None = None) -> QuerySource:
    if path is None:
        return QuerySource(DEFAULT_QUERIES, seed=seed)

    lines = read_text_lines(path)
    if not lines:
        raise ConfigurationError(f"Queries file has no queries: {path}")
    logger.info("Loaded %s queries from %s", len(lines), path)
    return QuerySource(lines, seed=seed)
