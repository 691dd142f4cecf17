"""Tests for metrics module — MetricsCollector and EngineMetrics."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from safe_wallet.metrics.collector import EngineMetrics, MetricsCollector


class TestMetricsCollector:
    """Tests for the low-level MetricsCollector."""

    def test_creates_registry(self) -> None:
        c = MetricsCollector()
        assert c.registry is not None

    def test_custom_registry(self) -> None:
        reg = CollectorRegistry()
        c = MetricsCollector(registry=reg)
        assert c.registry is reg

    def test_histogram(self) -> None:
        reg = CollectorRegistry()
        c = MetricsCollector(registry=reg)
        h = c.histogram("test_hist", "A test histogram")
        h.observe(0.5)
        assert reg.get_sample_value("test_hist_sum") == 0.5

    def test_counter(self) -> None:
        reg = CollectorRegistry()
        c = MetricsCollector(registry=reg)
        ct = c.counter("test_counter", "A test counter")
        ct.inc()
        ct.inc(2)
        assert reg.get_sample_value("test_counter_total") == 3.0


class TestEngineMetrics:
    """Tests for the high-level EngineMetrics."""

    def test_track_scan(self) -> None:
        m = EngineMetrics()
        with m.track_scan("balance"):
            pass
        assert (
            m.registry.get_sample_value("safe_output_scan_histogram_count", {"kind": "balance"})
            == 1
        )

    def test_track_step_records_on_error(self) -> None:
        m = EngineMetrics()
        with pytest.raises(ValueError, match="boom"), m.track_step("verify"):
            raise ValueError("boom")
        assert (
            m.registry.get_sample_value("safe_transfer_step_histogram_count", {"step": "verify"})
            == 1
        )

    def test_record_transfer(self) -> None:
        m = EngineMetrics()
        m.record_transfer("sent")
        m.record_transfer("sent")
        m.record_transfer("rejected")
        assert m.registry.get_sample_value("safe_transfers_total", {"outcome": "sent"}) == 2
        assert m.registry.get_sample_value("safe_transfers_total", {"outcome": "rejected"}) == 1

    def test_instances_isolated(self) -> None:
        a = EngineMetrics()
        b = EngineMetrics()
        a.record_transfer("sent")
        assert b.registry.get_sample_value("safe_transfers_total", {"outcome": "sent"}) is None

    def test_shared_collector(self) -> None:
        reg = CollectorRegistry()
        m = EngineMetrics(MetricsCollector(registry=reg))
        assert m.registry is reg
