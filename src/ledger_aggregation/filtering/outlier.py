"""
Single-vector poisoning check applied to a client's noisy model.

Although it goes by the name "multi-krum", the statistic compares the
squared magnitude of every coordinate against the spread of all coordinates
of the *same* vector; no distance to other clients is computed:

    l2[i]      = v[i] ** 2
    std        = pstdev(l2)
    ratio[i]   = std / (l2[i] - mean(l2) + std / len(v))
    anomalous  = mean(ratio) > 1
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ledger_aggregation.errors import DegenerateInputError
from ledger_aggregation.utils import get_logger

logger = get_logger("outlier_filter")


@dataclass(frozen=True)
class OutlierReport:
    """Intermediate values of one evaluation, kept for logging and tests."""

    mean_l2: float
    std_dev: float
    avg_ratio: float
    anomalous: bool


class OutlierFilter:
    """
    Ratio-of-spread test over one plaintext vector.

    Args:
        epsilon: Denominators within ``epsilon * max(std, 1)`` of zero are
            treated as degenerate instead of producing huge or infinite ratios.
        threshold: Average ratio above which the vector is flagged.
    """

    def __init__(self, epsilon: float = 1e-12, threshold: float = 1.0) -> None:
        if epsilon < 0:
            raise ValueError("epsilon must be non-negative")
        self.epsilon = float(epsilon)
        self.threshold = float(threshold)

    def evaluate(self, vector: Sequence[float]) -> OutlierReport:
        try:
            values = np.asarray(vector, dtype=np.float64).reshape(-1)
        except (TypeError, ValueError) as exc:
            raise DegenerateInputError(f"Vector is not numeric: {exc}") from exc
        if values.size == 0:
            raise DegenerateInputError("Cannot evaluate an empty vector")
        if not np.all(np.isfinite(values)):
            raise DegenerateInputError("Vector contains non-finite values")

        try:
            with np.errstate(divide="raise", over="raise", invalid="raise"):
                l2 = values**2
                if np.ptp(l2) == 0:
                    raise DegenerateInputError("All coordinates have the same magnitude; no spread to compare")
                mean_l2 = float(np.mean(l2))
                centered = l2 - mean_l2
                std_dev = float(np.sqrt(np.mean(centered**2)))
                avg_std_dev = std_dev / values.size
                denominators = centered + avg_std_dev
                if np.any(np.abs(denominators) <= self.epsilon * max(std_dev, 1.0)):
                    raise DegenerateInputError(
                        "Ratio denominator vanished (coordinate magnitude equals the mean)"
                    )
                ratios = std_dev / denominators
                avg_ratio = float(np.mean(ratios))
        except FloatingPointError as exc:
            raise DegenerateInputError(f"Arithmetic fault in outlier statistic: {exc}") from exc

        if not np.isfinite(avg_ratio):
            raise DegenerateInputError("Outlier statistic is not finite")
        return OutlierReport(
            mean_l2=mean_l2,
            std_dev=std_dev,
            avg_ratio=avg_ratio,
            anomalous=avg_ratio > self.threshold,
        )

    def is_anomalous(self, vector: Sequence[float]) -> bool:
        report = self.evaluate(vector)
        if report.anomalous:
            logger.debug(
                "Vector flagged: avg_ratio=%.6f std=%.6f mean_l2=%.6f",
                report.avg_ratio,
                report.std_dev,
                report.mean_l2,
            )
        return report.anomalous
