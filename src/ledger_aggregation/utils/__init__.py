from .logging import configure_logging, get_logger
from .metrics import CompositeMetrics, InMemoryMetrics, MetricPoint, MetricsSink, Timer
from .retry import RetryError, retry

__all__ = [
    "configure_logging",
    "get_logger",
    "CompositeMetrics",
    "InMemoryMetrics",
    "MetricPoint",
    "MetricsSink",
    "Timer",
    "RetryError",
    "retry",
]
