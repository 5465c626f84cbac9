"""
FinGate API Server

Exposes the orchestration pipeline over HTTP.
"""

import logging
import math
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fingate import __version__
from fingate.config import load_settings
from fingate.errors import ReasonCode, RequestSchemaError
from fingate.gateway import Gateway, build_gateway
from fingate.orchestrator import Outcome


logger = logging.getLogger(__name__)


STATUS_CODES = {
    ReasonCode.COMPLETED: 200,
    ReasonCode.RATE_LIMITED: 429,
    ReasonCode.COMPLIANCE_VIOLATION: 403,
    ReasonCode.SUSPECTED_FRAUD: 403,
    ReasonCode.ALL_PROVIDERS_EXHAUSTED: 503,
    ReasonCode.INTERNAL_ERROR: 500,
}


def outcome_response(outcome: Outcome) -> JSONResponse:
    """Map an Outcome to an HTTP response."""
    headers = {}
    if outcome.reason == ReasonCode.RATE_LIMITED:
        retry_after = outcome.details.get("retry_after_seconds", 0)
        headers["Retry-After"] = str(max(1, math.ceil(retry_after)))

    return JSONResponse(
        status_code=STATUS_CODES[outcome.reason],
        content=outcome.model_dump(mode="json"),
        headers=headers,
    )


def create_app(gateway: Optional[Gateway] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        gateway: Pre-wired gateway. Built from environment settings on
            startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.gateway is None:
            app.state.gateway = build_gateway(load_settings())
        await app.state.gateway.start()
        try:
            yield
        finally:
            await app.state.gateway.stop()

    app = FastAPI(
        title="FinGate API",
        description="AI-request orchestration gateway for financial analysis",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    # Enable CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestSchemaError)
    async def schema_error_handler(request: Request, exc: RequestSchemaError):
        return JSONResponse(status_code=422, content=exc.to_dict())

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        gw: Gateway = app.state.gateway
        return {
            "status": "healthy",
            "service": "fingate",
            "version": __version__,
            "providers": {e.name: e.health_status.value for e in gw.router.health()},
            "reference_version": gw.reference.version,
            "refresher_running": gw.refresher.running,
            "outcomes": gw.orchestrator.stats,
            "audit_failures": gw.orchestrator.audit_failures,
            "cache_entries": len(gw.cache),
        }

    @app.post("/v1/requests")
    async def submit_request(request: Request):
        """Submit a request through the gateway pipeline."""
        gw: Gateway = app.state.gateway
        body = await request.body()
        gateway_request = gw.request_validator.validate(body)

        logger.info(
            f"Received {gateway_request.operation_type.value} request "
            f"{gateway_request.request_id} from {gateway_request.caller_id}"
        )
        outcome = await gw.orchestrator.submit(gateway_request)
        return outcome_response(outcome)

    @app.get("/v1/providers")
    async def list_providers():
        """Provider health table in priority order."""
        gw: Gateway = app.state.gateway
        return [e.model_dump(mode="json") for e in gw.router.health()]

    @app.get("/v1/reference")
    async def current_reference():
        """Current reference-data snapshot."""
        gw: Gateway = app.state.gateway
        snapshot = gw.reference.current
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No reference snapshot loaded")
        return snapshot.model_dump(mode="json")

    @app.get("/v1/audit/verify")
    async def verify_audit_chain():
        """Validate the audit ledger's hash chain."""
        gw: Gateway = app.state.gateway
        return gw.ledger.validate_chain().model_dump()

    @app.get("/v1/audit/entries/{entry_id}")
    async def get_audit_entry(entry_id: str):
        gw: Gateway = app.state.gateway
        entry = gw.ledger.get_entry(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Ledger entry {entry_id} not found")
        return entry.model_dump(mode="json")

    @app.get("/v1/audit/requests/{request_id}")
    async def get_request_trail(request_id: str):
        """Pipeline events for one request, oldest first."""
        gw: Gateway = app.state.gateway
        entries = gw.ledger.get_entries_by_request(request_id)
        if not entries:
            raise HTTPException(status_code=404, detail=f"No events for request {request_id}")
        return [e.model_dump(mode="json") for e in entries]

    @app.get("/v1/audit/callers/{caller_id}")
    async def get_caller_trail(caller_id: str, limit: int = Query(default=50, ge=1, le=500)):
        """Recent events for one caller, newest first."""
        gw: Gateway = app.state.gateway
        return [e.model_dump(mode="json") for e in gw.ledger.get_entries_by_caller(caller_id, limit)]

    @app.get("/v1/audit/recent")
    async def get_recent_events(limit: int = Query(default=20, ge=1, le=500)):
        gw: Gateway = app.state.gateway
        return [e.model_dump(mode="json") for e in gw.ledger.get_recent_entries(limit)]

    return app


app = create_app()
