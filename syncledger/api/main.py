import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from syncledger.api.observability import setup_observability
from syncledger.api.persistence_profile import (
    app_persistence_profile_name,
    validate_persistence_profile_guardrails,
)
from syncledger.api.routers.ledger import router as ledger_router
from syncledger.api.routers.operations import router as operations_router
from syncledger.api.routers.proposals import router as proposals_router
from syncledger.api.routers.sync_config import sync_store_backend_name
from syncledger.api.routers.withdrawals import router as withdrawals_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    logger.info(
        "Sync ledger service starting. profile=%s backend=%s",
        app_persistence_profile_name(),
        sync_store_backend_name(),
    )
    yield


app = FastAPI(
    title="Sync Licensing Ledger API",
    version="0.1.0",
    description=(
        "Sync licensing proposals between clients and producers, the producer revenue "
        "ledger, and producer withdrawals.\n\n"
        "Callers identify themselves with `X-Actor-Id` and `X-Actor-Role` headers set by "
        "the upstream identity provider."
    ),
    openapi_tags=[
        {
            "name": "Sync Proposals",
            "description": "Proposal submission, decisions, negotiation and payment intake.",
        },
        {
            "name": "Producer Ledger",
            "description": "Producer balances, transactions, settlement and reconciliation.",
        },
        {
            "name": "Producer Withdrawals",
            "description": "Withdrawal requests and operator review.",
        },
        {
            "name": "Operations",
            "description": "Scheduled sweeps and notification redelivery.",
        },
    ],
    lifespan=_app_lifespan,
)

setup_observability(app)

app.include_router(proposals_router)
app.include_router(ledger_router)
app.include_router(withdrawals_router)
app.include_router(operations_router)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )


@app.get("/health", tags=["Operations"], summary="Liveness Probe")
def health() -> dict[str, str]:
    return {"status": "ok"}
