"""Prometheus export of aggregation round metrics."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from ledger_aggregation.utils.logging import get_logger

logger = get_logger("prometheus_metrics")

METRIC_PREFIX = "ledger_agg_"


class PrometheusMetrics:
    """
    Metrics sink backed by prometheus_client.

    Exposes the same ``emit_*`` surface as ``InMemoryMetrics``. Collectors are
    created on first use, keyed by metric name and label names, so callers do
    not need to declare them up front.
    """

    def __init__(self, engine_id: str = "engine", registry: Optional[CollectorRegistry] = None) -> None:
        self.engine_id = engine_id
        self.registry = registry or CollectorRegistry()
        self._counters: Dict[Tuple[str, Tuple[str, ...]], Counter] = {}
        self._gauges: Dict[Tuple[str, Tuple[str, ...]], Gauge] = {}
        self._histograms: Dict[Tuple[str, Tuple[str, ...]], Histogram] = {}
        self._lock = threading.Lock()
        self._server_started = False

    def _label_values(self, labels: Dict[str, str]) -> Tuple[Tuple[str, ...], Dict[str, str]]:
        merged = {"engine_id": self.engine_id, **{k: str(v) for k, v in labels.items()}}
        names = tuple(sorted(merged))
        return names, merged

    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None:
        names, values = self._label_values(labels)
        with self._lock:
            key = (name, names)
            if key not in self._counters:
                self._counters[key] = Counter(
                    f"{METRIC_PREFIX}{name}", f"Counter {name}", names, registry=self.registry
                )
            collector = self._counters[key]
        collector.labels(**values).inc(value)

    def emit_gauge(self, name: str, value: float, **labels: str) -> None:
        names, values = self._label_values(labels)
        with self._lock:
            key = (name, names)
            if key not in self._gauges:
                self._gauges[key] = Gauge(
                    f"{METRIC_PREFIX}{name}", f"Gauge {name}", names, registry=self.registry
                )
            collector = self._gauges[key]
        collector.labels(**values).set(value)

    def emit_timer(self, name: str, value: float, **labels: str) -> None:
        names, values = self._label_values(labels)
        with self._lock:
            key = (name, names)
            if key not in self._histograms:
                self._histograms[key] = Histogram(
                    f"{METRIC_PREFIX}{name}", f"Duration {name}", names, registry=self.registry
                )
            collector = self._histograms[key]
        collector.labels(**values).observe(value)

    def start_server(self, port: int) -> None:
        """Start the HTTP exporter once."""
        with self._lock:
            if self._server_started:
                return
            start_http_server(port, registry=self.registry)
            self._server_started = True
        logger.info("Prometheus exporter listening on port %d", port)
