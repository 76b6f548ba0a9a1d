"""
Ledger collaborator: durable key/value state plus private data collections.

These interfaces allow switching between an in-process mock (tests and
simulation) and a client for the HTTP ledger gateway.

Real implementation:
- GatewayLedger: talks to ``ledger_aggregation.storage.ledger_service``
"""

import base64
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import httpx

from ledger_aggregation.utils.retry import RetryError, retry

logger = logging.getLogger(__name__)


class LedgerInterface(ABC):
    """Abstract interface for ledger-like state with restricted collections."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Read public state. Returns None if the key was never written."""
        pass

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Write public state; durable once this returns."""
        pass

    @abstractmethod
    def get_private(self, collection: str, key: str) -> Optional[bytes]:
        """Read from a private data collection. Returns None if absent."""
        pass

    @abstractmethod
    def put_private(self, collection: str, key: str, value: bytes) -> None:
        """Write to a private data collection."""
        pass


class MockLedger(LedgerInterface):
    """
    Mock ledger using a JSON file or in-memory storage.

    Values are stored base64-encoded so the file stays valid JSON.
    """

    def __init__(self, storage_path: Optional[str] = None) -> None:
        """
        Initialize mock ledger.

        Args:
            storage_path: Path to JSON file. If None, uses in-memory storage.
        """
        self._storage_path = Path(storage_path) if storage_path else None
        self._state: Dict[str, bytes] = {}
        self._private: Dict[str, Dict[str, bytes]] = {}
        self._lock = threading.Lock()

        if self._storage_path:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            if self._storage_path.exists():
                self._load()
            else:
                self._save()

    def _load(self) -> None:
        """Load state from file. Caller must hold _lock or be in __init__."""
        try:
            data = json.loads(self._storage_path.read_text())
        except (json.JSONDecodeError, FileNotFoundError) as e:
            logger.warning(f"Failed to load ledger state: {e}")
            return
        self._state = {k: base64.b64decode(v) for k, v in data.get("state", {}).items()}
        self._private = {
            collection: {k: base64.b64decode(v) for k, v in entries.items()}
            for collection, entries in data.get("private", {}).items()
        }

    def _save(self) -> None:
        """Save state to file. Caller must hold _lock or be in __init__."""
        if not self._storage_path:
            return
        data = {
            "state": {k: base64.b64encode(v).decode("ascii") for k, v in self._state.items()},
            "private": {
                collection: {k: base64.b64encode(v).decode("ascii") for k, v in entries.items()}
                for collection, entries in self._private.items()
            },
        }
        self._storage_path.write_text(json.dumps(data, indent=2))

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._state.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._state[key] = bytes(value)
            self._save()

    def get_private(self, collection: str, key: str) -> Optional[bytes]:
        with self._lock:
            return self._private.get(collection, {}).get(key)

    def put_private(self, collection: str, key: str, value: bytes) -> None:
        with self._lock:
            self._private.setdefault(collection, {})[key] = bytes(value)
            self._save()

    def clear(self) -> None:
        """Clear all state (for testing)."""
        with self._lock:
            self._state.clear()
            self._private.clear()
            self._save()


class GatewayLedger(LedgerInterface):
    """
    Ledger implementation backed by the HTTP ledger gateway.

    Transport errors are retried with exponential backoff; HTTP error
    responses are not retried.
    """

    def __init__(
        self,
        gateway_url: str = "http://localhost:9000",
        timeout: float = 10.0,
        retries: int = 2,
        backoff: float = 0.5,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize gateway ledger client.

        Args:
            gateway_url: URL of the ledger gateway service.
            timeout: Request timeout in seconds.
            retries: Retries for transport-level failures.
            backoff: Initial backoff delay in seconds.
            client: Pre-built httpx client (tests pass a FastAPI TestClient).
        """
        self._gateway_url = gateway_url.rstrip("/")
        self._retries = retries
        self._backoff = backoff
        self._client = client or httpx.Client(timeout=timeout)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self._gateway_url}{path}"
        try:
            return retry(
                lambda: self._client.request(method, url, **kwargs),
                retries=self._retries,
                backoff=self._backoff,
                exceptions=(httpx.TransportError,),
            )
        except RetryError as e:
            logger.error(f"Ledger gateway unreachable after {e.attempts} attempts: {e.last_error}")
            raise RuntimeError(f"Ledger gateway {method} {path} failed: {e}") from e

    def _read(self, path: str) -> Optional[bytes]:
        response = self._request("GET", path)
        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise RuntimeError(f"Ledger read failed: {e}") from e
        return base64.b64decode(response.json()["value"])

    def _write(self, path: str, value: bytes) -> None:
        response = self._request(
            "PUT",
            path,
            json={"value": base64.b64encode(value).decode("ascii")},
        )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise RuntimeError(f"Ledger write failed: {e}") from e
        logger.debug(f"Wrote {len(value)} bytes to {path}")

    def get(self, key: str) -> Optional[bytes]:
        return self._read(f"/state/{key}")

    def put(self, key: str, value: bytes) -> None:
        self._write(f"/state/{key}", value)

    def get_private(self, collection: str, key: str) -> Optional[bytes]:
        return self._read(f"/private/{collection}/{key}")

    def put_private(self, collection: str, key: str, value: bytes) -> None:
        self._write(f"/private/{collection}/{key}", value)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
