"""Outcome counters for CRUD dispatch."""

from __future__ import annotations

from collections import Counter
from typing import Dict

from .logging import get_logger

logger = get_logger(__name__)


class MetricsClient:  # pragma: no cover - interface only
    def increment(self, metric: str, value: int = 1) -> None:
        raise NotImplementedError


class InMemoryMetricsClient(MetricsClient):
    """Process-local counters, e.g. ``crud_update_total``."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def increment(self, metric: str, value: int = 1) -> None:
        self._counts[metric] += value
        logger.debug("crud_metric", extra={"metric": metric, "value": value})

    def count(self, metric: str) -> int:
        return self._counts[metric]

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()


_client: MetricsClient | None = None


def get_metrics_client() -> MetricsClient:
    global _client
    if _client is None:
        _client = InMemoryMetricsClient()
    return _client
