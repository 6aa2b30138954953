"""Labelled counters for the feeder's operational metrics."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Sequence

PROMETHEUS_NAMESPACE = "pricefeeder"


class CounterVec:
    """A family of monotonically increasing counters keyed by label values."""

    def __init__(self, namespace: str, name: str, help: str, label_names: Sequence[str]) -> None:
        self.namespace = namespace
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._counts: Counter[tuple[str, ...]] = Counter()
        self._lock = threading.Lock()

    @property
    def full_name(self) -> str:
        """The metric name including its namespace."""
        return f"{self.namespace}_{self.name}" if self.namespace else self.name

    def _key(self, values: Sequence[str]) -> tuple[str, ...]:
        if len(values) != len(self.label_names):
            raise ValueError(
                f"{self.full_name} expects {len(self.label_names)} label values, got {len(values)}"
            )
        return tuple(str(value) for value in values)

    def inc(self, *args: str) -> None:
        """Increment the counter for the given label values by one."""
        key = self._key(args)
        with self._lock:
            self._counts[key] += 1

    def value(self, *args: str) -> int:
        """Current count for the given label values."""
        key = self._key(args)
        with self._lock:
            return self._counts[key]


PRICE_SOURCE_COUNTER = CounterVec(
    PROMETHEUS_NAMESPACE,
    "fetched_prices_total",
    "The total number prices fetched, by source and success status",
    ("source", "success"),
)