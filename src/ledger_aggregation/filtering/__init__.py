"""Poisoning filters applied before a proposal is folded into a round."""

from .outlier import OutlierFilter, OutlierReport

__all__ = ["OutlierFilter", "OutlierReport"]
