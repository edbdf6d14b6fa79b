"""
ClaimRouter API

Vehicle-damage claim intake, AI routing and adjuster verification.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import audit, claims, controls, routing, verification
from api.schemas.responses import ErrorResponse, HealthResponse
from claimrouter import __version__
from claimrouter.agents import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, AgentClient
from claimrouter.audit import AuditLogger
from claimrouter.controls import ControlsStore, load_controls
from claimrouter.engine import ClaimWorkflow
from claimrouter.exceptions import (
    AgentStageError,
    ApprovalBlockedError,
    ClaimNotFoundError,
    ClaimRouterError,
    ControlsValidationError,
    ImmutableFieldError,
    InvalidDetectionError,
    InvalidReasonCodeError,
    InvalidStatusTransitionError,
    QuotaExceededError,
    RateLimitedError,
    UnknownEntityError,
    VerificationError,
)
from claimrouter.logging_config import configure_logging
from claimrouter.store import InMemoryRecordStore

logger = logging.getLogger("claimrouter.api")

# Shared services (built on startup)
controls_store: Optional[ControlsStore] = None
agent_client: Optional[AgentClient] = None

# First match wins, so subclasses come before their bases.
ERROR_STATUS: list[tuple[type, int]] = [
    (ClaimNotFoundError, 404),
    (UnknownEntityError, 404),
    (InvalidReasonCodeError, 422),
    (VerificationError, 400),
    (InvalidStatusTransitionError, 409),
    (ImmutableFieldError, 409),
    (ApprovalBlockedError, 409),
    (ControlsValidationError, 422),
    (InvalidDetectionError, 422),
    (RateLimitedError, 429),
    (QuotaExceededError, 402),
    (AgentStageError, 502),
]


def status_for(error: ClaimRouterError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def build_agent_client() -> Optional[AgentClient]:
    """AI agents are optional; without an API key the photo endpoint is off."""
    api_key = os.environ.get("CLAIMROUTER_AGENT_API_KEY")
    if not api_key:
        return None
    return AgentClient(
        api_key=api_key,
        base_url=os.environ.get("CLAIMROUTER_AGENT_BASE_URL", DEFAULT_BASE_URL),
        timeout=float(os.environ.get("CLAIMROUTER_AGENT_TIMEOUT", DEFAULT_TIMEOUT)),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the record store, audit log and workflow on startup."""
    global controls_store, agent_client

    configure_logging()
    defaults = load_controls(os.environ.get("CLAIMROUTER_CONTROLS_PATH"))

    store = InMemoryRecordStore()
    audit_logger = AuditLogger(store)
    controls_store = ControlsStore(defaults=defaults, audit_logger=audit_logger)
    workflow = ClaimWorkflow(store, audit_logger=audit_logger, controls_store=controls_store)
    agent_client = build_agent_client()

    # Share services with routes
    claims.set_services(workflow, agent_client)
    verification.set_workflow(workflow)
    audit.set_workflow(workflow)
    controls.set_controls_store(controls_store)
    routing.set_controls_store(controls_store)

    logger.info(
        "ClaimRouter API started (agents %s)",
        "configured" if agent_client else "not configured",
    )

    yield

    logger.info("Shutting down...")


# Create app
app = FastAPI(
    title="ClaimRouter API",
    description="""
**AI-assisted vehicle-damage claim routing with human verification.**

## Features

- **Deterministic Routing**: Rules-based recommendation with reasons and controls snapshot
- **Human Verification**: Verify, reject or correct AI-proposed parts and detection boxes
- **Approval Gate**: Claimants who ask for a human always get one
- **Audit Trail**: Append-only, hash-chained events per claim

## Quick Start

1. `POST /claims` - Create a claim
2. `POST /claims/{id}/assessment` - Submit AI output and route it
3. `POST /claims/{id}/verification/parts/{i}/verify` - Verify a part
4. `POST /claims/{id}/decision` - Approve, review or escalate
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(claims.router)
app.include_router(verification.router)
app.include_router(audit.router)
app.include_router(controls.router)
app.include_router(routing.router)


@app.exception_handler(ClaimRouterError)
async def claimrouter_error_handler(request: Request, exc: ClaimRouterError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Request failed: %s", exc, extra={"claim_id": exc.claim_id})
    body = ErrorResponse(**exc.to_dict())
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health():
    """Health check endpoint."""
    return HealthResponse(
        healthy=True,
        version=__version__,
        agents_configured=agent_client is not None,
        controls=controls_store.get().to_dict() if controls_store else {},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
