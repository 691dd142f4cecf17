"""Metrics — Prometheus metrics collection."""

from __future__ import annotations

from safe_wallet.metrics.collector import EngineMetrics, MetricsCollector

__all__ = ["EngineMetrics", "MetricsCollector"]
