"""
FILE: src/api/main.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.observability import setup_observability
from src.api.persistence_profile import validate_persistence_profile_guardrails
from src.api.routers.assessments import router as assessment_router
from src.api.routers.ips import router as ips_router
from src.api.routers.portfolios import router as portfolio_router
from src.api.routers.securities import router as security_router


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Suitability Engine API",
    version="0.1.0",
    description=(
        "Risk questionnaire scoring, suitability classification, IPS drafting and portfolio "
        "construction for advisory workflows.\n\n"
        "Every portfolio mutation returns the full portfolio with its recomputed cash balance."
    ),
    openapi_tags=[
        {
            "name": "Risk Assessment",
            "description": "Questionnaires, submissions, advisor review and eligibility.",
        },
        {
            "name": "Investment Policy Statement",
            "description": "IPS drafting from eligible assessments and allocation edits.",
        },
        {
            "name": "Portfolio Construction",
            "description": "Portfolio build, holding edits, removals and rebalancing.",
        },
        {
            "name": "Security Catalog",
            "description": "Securities and asset classes available for construction.",
        },
        {"name": "Health", "description": "Liveness and readiness probes."},
    ],
    lifespan=_app_lifespan,
)

setup_observability(app)
logger = logging.getLogger(__name__)

app.include_router(assessment_router)
app.include_router(ips_router)
app.include_router(portfolio_router)
app.include_router(security_router)


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


@app.get("/health", tags=["Health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/live", tags=["Health"])
def health_live() -> dict[str, str]:
    return {"status": "live"}


@app.get("/health/ready", tags=["Health"])
def health_ready() -> dict[str, str]:
    return {"status": "ready"}
