"""Metrics collector — Prometheus counters and histograms.

- ``safe_output_scan_histogram`` (kind: balance, selection)
- ``safe_transfer_step_histogram`` (step: verify, sign, send)
- ``safe_transfers_total`` (outcome: sent, rejected, failed)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "safe"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`EngineMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class EngineMetrics:
    """High-level engine metrics. Histograms track durations in seconds."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._scan = self._collector.histogram(
            f"{_PREFIX}_output_scan_histogram",
            "Duration of paginated output scans",
            ("kind",),
        )
        self._step = self._collector.histogram(
            f"{_PREFIX}_transfer_step_histogram",
            "Duration of verify, sign and send steps",
            ("step",),
        )
        self._transfers = self._collector.counter(
            f"{_PREFIX}_transfers",
            "Transfers by outcome",
            ("outcome",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    @contextmanager
    def track_scan(self, kind: str) -> Iterator[None]:
        """Track the duration of an output scan (balance or selection)."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._scan.labels(kind=kind).observe(time.monotonic() - start)

    @contextmanager
    def track_step(self, step: str) -> Iterator[None]:
        """Track the duration of one verify/sign/send step."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._step.labels(step=step).observe(time.monotonic() - start)

    def record_transfer(self, outcome: str) -> None:
        """Count a finished transfer attempt."""
        self._transfers.labels(outcome=outcome).inc()
