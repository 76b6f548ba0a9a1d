"""
HTTP surface over the aggregation contract.

Proposals and shares are posted as JSON documents; published ledger values are
returned base64-encoded.

Run with: uvicorn ledger_aggregation.service.api:app --host 0.0.0.0 --port 8080
"""

import json
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ledger_aggregation.config import load_app_config
from ledger_aggregation.errors import ErrorKind
from ledger_aggregation.service.contract import AggregationContract, ContractResponse
from ledger_aggregation.utils import get_logger

logger = get_logger("api")


class DecryptRequest(BaseModel):
    """Request model for threshold decryption."""

    shares: List[Dict[str, Any]]


class ContractReply(BaseModel):
    """Response model mirroring ``ContractResponse``."""

    status: str
    message: str = ""
    payload: Optional[str] = None
    plaintext: Optional[List[float]] = None


def _reply(response: ContractResponse) -> ContractReply:
    return ContractReply(**response.to_dict())


def create_app(contract: Optional[AggregationContract] = None) -> FastAPI:
    """Build the API around ``contract`` (built from the config file when omitted)."""
    if contract is None:
        config, path = load_app_config()
        logger.info("Building contract from %s", path)
        contract = AggregationContract.from_config(config)

    app = FastAPI(
        title="Ledger Aggregation",
        description="Encrypted model aggregation with poison filtering and threshold decryption",
        version="0.1.0",
    )
    app.state.contract = contract

    @app.post("/proposals")
    async def submit_proposal(proposal: Dict[str, Any]) -> ContractReply:
        """Submit one client proposal."""
        return _reply(contract.submit(json.dumps(proposal).encode("utf-8")))

    @app.get("/state/{key}")
    async def query_state(key: str) -> ContractReply:
        """Read the latest published value under ``key``."""
        response = contract.query_latest(key)
        if response.status == ErrorKind.NOT_FOUND.value:
            raise HTTPException(status_code=404, detail=response.message)
        return _reply(response)

    @app.post("/state/{key}/release")
    async def release_partial(key: str) -> ContractReply:
        """Move the private partial aside and return the public component."""
        response = contract.release_partial(key)
        if response.status == ErrorKind.NOT_FOUND.value:
            raise HTTPException(status_code=404, detail=response.message)
        return _reply(response)

    @app.post("/decrypt")
    async def decrypt(request: DecryptRequest) -> ContractReply:
        """Combine decryption shares into the plaintext aggregate."""
        shares = [json.dumps(share).encode("utf-8") for share in request.shares]
        return _reply(contract.decrypt(shares))

    @app.get("/round")
    async def round_status() -> Dict[str, Any]:
        """Current phase and quorum counters."""
        return contract.status()

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
