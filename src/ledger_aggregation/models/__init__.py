from ledger_aggregation.models.proposal import PlaintextResult, Proposal

__all__ = [
    "PlaintextResult",
    "Proposal",
]
