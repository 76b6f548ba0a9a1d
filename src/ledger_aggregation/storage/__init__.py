from .ledger import GatewayLedger, LedgerInterface, MockLedger

__all__ = [
    "GatewayLedger",
    "LedgerInterface",
    "MockLedger",
]
