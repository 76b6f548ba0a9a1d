"""Metric sinks used by the round engine, the decryptor and the contract."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

Labels = Tuple[Tuple[str, str], ...]

COUNTER = "counter"
GAUGE = "gauge"
TIMER = "timer"


class MetricsSink(Protocol):
    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None: ...

    def emit_gauge(self, name: str, value: float, **labels: str) -> None: ...

    def emit_timer(self, name: str, value: float, **labels: str) -> None: ...


@dataclass(frozen=True)
class MetricPoint:
    value: float
    labels: Labels
    kind: str = COUNTER
    name: str = ""


class InMemoryMetrics:
    """
    Records every emitted sample in order.

    ``counters``, ``gauges`` and ``timers`` group the samples by metric name.
    """

    def __init__(self) -> None:
        self.points: List[MetricPoint] = []
        self._lock = threading.Lock()

    def _record(self, kind: str, name: str, value: float, labels: Dict[str, str]) -> None:
        point = MetricPoint(
            value=float(value),
            labels=tuple(sorted((k, str(v)) for k, v in labels.items())),
            kind=kind,
            name=name,
        )
        with self._lock:
            self.points.append(point)

    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None:
        self._record(COUNTER, name, value, labels)

    def emit_gauge(self, name: str, value: float, **labels: str) -> None:
        self._record(GAUGE, name, value, labels)

    def emit_timer(self, name: str, value: float, **labels: str) -> None:
        self._record(TIMER, name, value, labels)

    def _grouped(self, kind: str) -> Dict[str, List[MetricPoint]]:
        grouped: Dict[str, List[MetricPoint]] = {}
        with self._lock:
            for point in self.points:
                if point.kind == kind:
                    grouped.setdefault(point.name, []).append(point)
        return grouped

    @property
    def counters(self) -> Dict[str, List[MetricPoint]]:
        return self._grouped(COUNTER)

    @property
    def gauges(self) -> Dict[str, List[MetricPoint]]:
        return self._grouped(GAUGE)

    @property
    def timers(self) -> Dict[str, List[MetricPoint]]:
        return self._grouped(TIMER)

    def counter_total(self, name: str, **labels: str) -> float:
        """Sum of ``name`` samples whose labels include ``labels``."""
        wanted = {(k, str(v)) for k, v in labels.items()}
        return sum(p.value for p in self.counters.get(name, []) if wanted.issubset(p.labels))

    def last_gauge(self, name: str) -> Optional[float]:
        points = self.gauges.get(name)
        return points[-1].value if points else None

    def snapshot(self) -> Dict[str, Dict[str, List[MetricPoint]]]:
        return {"counters": self.counters, "gauges": self.gauges, "timers": self.timers}


class Timer:
    """Context manager emitting the elapsed wall time of its block as a timer sample."""

    def __init__(self, sink: MetricsSink, name: str, **labels: str) -> None:
        self.sink = sink
        self.name = name
        self.labels = labels
        self.elapsed: Optional[float] = None
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.elapsed = time.perf_counter() - self._start
        self.sink.emit_timer(self.name, self.elapsed, **self.labels)


class CompositeMetrics:
    """Forwards every sample to each wrapped sink (e.g. in-memory plus Prometheus)."""

    def __init__(self, sinks: Sequence[MetricsSink]) -> None:
        self.sinks = list(sinks)

    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None:
        for sink in self.sinks:
            sink.emit_counter(name, value, **labels)

    def emit_gauge(self, name: str, value: float, **labels: str) -> None:
        for sink in self.sinks:
            sink.emit_gauge(name, value, **labels)

    def emit_timer(self, name: str, value: float, **labels: str) -> None:
        for sink in self.sinks:
            sink.emit_timer(name, value, **labels)
