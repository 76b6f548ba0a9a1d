"""
HTTP ledger gateway holding public state and private data collections.

This stands in for the ledger host: once a write returns, the value is visible
to every subsequent read. Values travel base64-encoded inside JSON bodies.

Run with: uvicorn ledger_aggregation.storage.ledger_service:app --host 0.0.0.0 --port 9000
"""

import base64
import binascii
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ledger_aggregation.storage.ledger import MockLedger

logger = logging.getLogger(__name__)


class ValueRequest(BaseModel):
    """Request model for a state write."""

    value: str


class ValueResponse(BaseModel):
    """Response model for a state read or write."""

    key: str
    value: str
    collection: Optional[str] = None
    written_at: Optional[str] = None


def _decode(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Value is not valid base64: {e}")


def create_ledger_app(ledger: Optional[MockLedger] = None) -> FastAPI:
    """Build the gateway app around ``ledger`` (in-memory when omitted)."""
    store = ledger if ledger is not None else MockLedger()
    app = FastAPI(
        title="Ledger Gateway",
        description="Key/value ledger state with private data collections",
        version="1.0.0",
    )
    app.state.ledger = store

    @app.put("/state/{key}")
    async def put_state(key: str, request: ValueRequest) -> ValueResponse:
        """Write public state."""
        store.put(key, _decode(request.value))
        written_at = datetime.now(timezone.utc).isoformat()
        logger.info(f"Committed state key={key} bytes={len(request.value)}")
        return ValueResponse(key=key, value=request.value, written_at=written_at)

    @app.get("/state/{key}")
    async def get_state(key: str) -> ValueResponse:
        """Read public state."""
        value = store.get(key)
        if value is None:
            raise HTTPException(status_code=404, detail="Key not found")
        return ValueResponse(key=key, value=base64.b64encode(value).decode("ascii"))

    @app.put("/private/{collection}/{key}")
    async def put_private(collection: str, key: str, request: ValueRequest) -> ValueResponse:
        """Write to a private data collection."""
        store.put_private(collection, key, _decode(request.value))
        written_at = datetime.now(timezone.utc).isoformat()
        logger.info(f"Committed private data collection={collection} key={key}")
        return ValueResponse(key=key, value=request.value, collection=collection, written_at=written_at)

    @app.get("/private/{collection}/{key}")
    async def get_private(collection: str, key: str) -> ValueResponse:
        """Read from a private data collection."""
        value = store.get_private(collection, key)
        if value is None:
            raise HTTPException(status_code=404, detail="Private data not found")
        return ValueResponse(
            key=key,
            value=base64.b64encode(value).decode("ascii"),
            collection=collection,
        )

    @app.delete("/state", status_code=204)
    async def clear_state() -> None:
        """Clear all state (for testing)."""
        store.clear()

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


STORAGE_PATH = os.environ.get("LEDGER_STORAGE_PATH")

app = create_ledger_app(MockLedger(storage_path=STORAGE_PATH))
