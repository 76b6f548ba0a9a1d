"""Tests for the mock ledger and the gateway ledger client."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from ledger_aggregation.storage import GatewayLedger, MockLedger
from ledger_aggregation.storage.ledger_service import create_ledger_app


class TestMockLedgerInMemory:
    def test_put_and_get(self) -> None:
        ledger = MockLedger()
        assert ledger.get("latest_model") is None
        ledger.put("latest_model", b"\x00\x01aggregate")
        assert ledger.get("latest_model") == b"\x00\x01aggregate"

    def test_overwrite_replaces_value(self) -> None:
        ledger = MockLedger()
        ledger.put("k", b"first")
        ledger.put("k", b"second")
        assert ledger.get("k") == b"second"

    def test_private_collections_are_separate_from_state(self) -> None:
        ledger = MockLedger()
        ledger.put_private("axCollection", "latest_model", b"[1,2,3]")
        assert ledger.get("latest_model") is None
        assert ledger.get_private("axCollection", "latest_model") == b"[1,2,3]"
        assert ledger.get_private("other", "latest_model") is None

    def test_clear(self) -> None:
        ledger = MockLedger()
        ledger.put("k", b"v")
        ledger.put_private("c", "k", b"v")
        ledger.clear()
        assert ledger.get("k") is None
        assert ledger.get_private("c", "k") is None


class TestMockLedgerFile:
    def test_persists_across_instances(self, tmp_path) -> None:
        path = tmp_path / "ledger" / "state.json"
        ledger = MockLedger(storage_path=str(path))
        ledger.put("latest_model", b"\xffbinary")
        ledger.put_private("axCollection", "latest_model", b"private")

        reloaded = MockLedger(storage_path=str(path))

        assert reloaded.get("latest_model") == b"\xffbinary"
        assert reloaded.get_private("axCollection", "latest_model") == b"private"
        assert set(json.loads(path.read_text())) == {"state", "private"}

    def test_corrupt_file_starts_empty(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")
        ledger = MockLedger(storage_path=str(path))
        assert ledger.get("anything") is None


class TestGatewayLedger:
    def _ledger(self):
        backing = MockLedger()
        client = TestClient(create_ledger_app(backing))
        return GatewayLedger(gateway_url="http://testserver", client=client), backing

    def test_state_round_trip(self) -> None:
        ledger, backing = self._ledger()
        ledger.put("latest_model", b"\x00ciphertext")
        assert ledger.get("latest_model") == b"\x00ciphertext"
        assert backing.get("latest_model") == b"\x00ciphertext"

    def test_missing_keys_return_none(self) -> None:
        ledger, _ = self._ledger()
        assert ledger.get("latest_model") is None
        assert ledger.get_private("axCollection", "latest_model") is None

    def test_private_round_trip(self) -> None:
        ledger, backing = self._ledger()
        ledger.put_private("axCollection", "latest_model", b"[4,5]")
        assert ledger.get_private("axCollection", "latest_model") == b"[4,5]"
        assert backing.get_private("axCollection", "latest_model") == b"[4,5]"

    def test_transport_errors_are_retried(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"key": "k", "value": "dmFsdWU="})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        ledger = GatewayLedger(gateway_url="http://gateway", retries=2, backoff=0.0, client=client)

        assert ledger.get("k") == b"value"
        assert calls["count"] == 3

    def test_exhausted_retries_raise_runtime_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        ledger = GatewayLedger(gateway_url="http://gateway", retries=1, backoff=0.0, client=client)

        with pytest.raises(RuntimeError, match="failed"):
            ledger.put("k", b"v")

    def test_server_errors_are_not_retried(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(500, json={"detail": "boom"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        ledger = GatewayLedger(gateway_url="http://gateway", retries=3, backoff=0.0, client=client)

        with pytest.raises(RuntimeError, match="Ledger read failed"):
            ledger.get("k")
        assert calls["count"] == 1
