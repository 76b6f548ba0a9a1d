"""Tests for metrics sinks, logging helpers and the retry helper."""

import json
import logging

import pytest
from prometheus_client import CollectorRegistry

from ledger_aggregation.utils import (
    CompositeMetrics,
    InMemoryMetrics,
    RetryError,
    Timer,
    configure_logging,
    get_logger,
    retry,
)
from ledger_aggregation.utils.prometheus_metrics import PrometheusMetrics


def test_in_memory_counter_totals_filter_by_labels():
    metrics = InMemoryMetrics()
    metrics.emit_counter("proposals", status="Accepted")
    metrics.emit_counter("proposals", status="Accepted")
    metrics.emit_counter("proposals", status="RejectedPoison")
    assert metrics.counter_total("proposals") == 3
    assert metrics.counter_total("proposals", status="Accepted") == 2
    assert metrics.counter_total("missing") == 0


def test_last_gauge_and_snapshot():
    metrics = InMemoryMetrics()
    assert metrics.last_gauge("required_count") is None
    metrics.emit_gauge("required_count", 10)
    metrics.emit_gauge("required_count", 9)
    assert metrics.last_gauge("required_count") == 9
    assert len(metrics.snapshot()["gauges"]["required_count"]) == 2


def test_timer_records_elapsed():
    metrics = InMemoryMetrics()
    with Timer(metrics, "decrypt_seconds", round="0"):
        pass
    [point] = metrics.timers["decrypt_seconds"]
    assert point.value >= 0
    assert point.labels == (("round", "0"),)


def test_composite_fans_out():
    first, second = InMemoryMetrics(), InMemoryMetrics()
    composite = CompositeMetrics([first, second])
    composite.emit_counter("rounds_closed")
    composite.emit_gauge("accepted_count", 3)
    composite.emit_timer("decrypt_seconds", 0.1)
    for sink in (first, second):
        assert sink.counter_total("rounds_closed") == 1
        assert sink.last_gauge("accepted_count") == 3
        assert len(sink.timers["decrypt_seconds"]) == 1


class TestPrometheusMetrics:
    def test_counter_and_gauge_exported_with_engine_label(self):
        registry = CollectorRegistry()
        metrics = PrometheusMetrics(engine_id="engine-a", registry=registry)
        metrics.emit_counter("proposals", status="Accepted")
        metrics.emit_counter("proposals", status="Accepted")
        metrics.emit_gauge("required_count", 9)

        assert registry.get_sample_value(
            "ledger_agg_proposals_total", {"engine_id": "engine-a", "status": "Accepted"}
        ) == 2.0
        assert registry.get_sample_value("ledger_agg_required_count", {"engine_id": "engine-a"}) == 9.0

    def test_timer_becomes_histogram(self):
        registry = CollectorRegistry()
        metrics = PrometheusMetrics(engine_id="engine-b", registry=registry)
        metrics.emit_timer("decrypt_seconds", 0.25)
        assert registry.get_sample_value("ledger_agg_decrypt_seconds_count", {"engine_id": "engine-b"}) == 1.0
        assert registry.get_sample_value("ledger_agg_decrypt_seconds_sum", {"engine_id": "engine-b"}) == 0.25


class TestRetry:
    def test_succeeds_after_transient_failures(self):
        attempts = {"count": 0}
        delays = []

        def flaky():
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise ConnectionError("down")
            return "ok"

        assert retry(flaky, retries=3, backoff=0.5, exceptions=(ConnectionError,), sleep=delays.append) == "ok"
        assert delays == [0.5, 1.0]

    def test_raises_after_exhausting_retries(self):
        def always_fails():
            raise ConnectionError("down")

        delays = []
        with pytest.raises(RetryError) as info:
            retry(always_fails, retries=3, backoff=1.0, exceptions=(ConnectionError,), sleep=delays.append, max_delay=1.5)
        assert info.value.attempts == 4
        assert isinstance(info.value.last_error, ConnectionError)
        assert delays == [1.0, 1.5, 1.5]

    def test_other_exceptions_propagate(self):
        def wrong():
            raise KeyError("nope")

        with pytest.raises(KeyError):
            retry(wrong, retries=5, backoff=0.0, exceptions=(ConnectionError,), sleep=lambda _: None)


def test_get_logger_namespacing():
    assert get_logger("round").name == "ledger_aggregation.round"
    assert get_logger("ledger_aggregation.api").name == "ledger_aggregation.api"


def test_configure_logging_writes_json_with_round_context(tmp_path):
    log_file = tmp_path / "engine.log"
    package_logger = configure_logging(level="DEBUG", json_output=True, log_file=str(log_file))
    try:
        get_logger("round").info("closed", extra={"round_index": 3})
        for handler in package_logger.handlers:
            handler.flush()
        [line] = log_file.read_text().splitlines()
        entry = json.loads(line)
        assert entry["message"] == "closed"
        assert entry["logger"] == "ledger_aggregation.round"
        assert entry["round_index"] == 3
        assert "client_id" not in entry
    finally:
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
            handler.close()
        package_logger.propagate = True
        package_logger.setLevel(logging.NOTSET)
