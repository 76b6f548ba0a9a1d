"""
Ledger-hosted aggregation of encrypted model updates.

Components:
- Ciphertext algebra (ring and scaled encodings) and wire codec
- Single-vector poisoning filter
- Adaptive-quorum aggregation round
- Threshold decryption and round reset
- Ledger collaborators and HTTP surfaces
"""

__all__ = ["config", "crypto", "errors", "filtering", "models", "round", "service", "storage", "utils"]
