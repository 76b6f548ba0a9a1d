from .contract import SUCCESS, AggregationContract, ContractResponse, build_ledger

__all__ = [
    "SUCCESS",
    "AggregationContract",
    "ContractResponse",
    "build_ledger",
]
