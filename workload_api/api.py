"""FastAPI application exposing coordinator workload endpoints.

Run locally with ``uvicorn workload_api.api:app --reload --port 8000``.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workload_engine import NotFoundError, UpstreamUnavailableError, ValidationError

from .config import get_api_config
from .db import ConnectionManager
from .logging_config import get_logger
from .models import (
    CoordinatorLoadsResponse,
    CoordinatorMetricsResponse,
    PortfolioWorkloadResponse,
    RefreshResponse,
    RubricResponse,
    RubricScoreResponse,
    RubricSelectionModel,
    StudyWorkloadSettings,
    StudyWorkloadSettingsUpdate,
    WeeklyLogModel,
    WeeklyLogSubmission,
    WorkloadTrendResponse,
)
from .scheduler import start_scheduler, stop_scheduler
from .services import metrics as metrics_service
from .services import rubric as rubric_service
from .services import settings as settings_service
from .services import workload as workload_service

log = get_logger(__name__)


def require_bearer(authorization: Optional[str] = Header(default=None)) -> str:
    """Check that a bearer token is present. Verifying it is the identity provider's job."""

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or malformed bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


@asynccontextmanager
async def lifespan(_: FastAPI):
    start_scheduler()
    yield
    stop_scheduler()
    ConnectionManager.close_pool()


app = FastAPI(
    title="Coordinator Workload API",
    description="Scores study complexity and allocates coordinator workload.",
    version="1.0.0",
    dependencies=[Depends(require_bearer)],
    lifespan=lifespan,
)

config = get_api_config()
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    log.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("Rejected malformed body for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Malformed request body.", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in exc.errors()]


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailableError)
async def handle_upstream_unavailable(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    log.error("Upstream unavailable during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage is temporarily unavailable. Please retry."},
    )


@app.get("/cwe/settings/{study_id}", response_model=StudyWorkloadSettings, tags=["Settings"])
def read_study_settings(study_id: str) -> StudyWorkloadSettings:
    log.info("Handling incoming request for /cwe/settings/%s endpoint", study_id)
    return settings_service.get_settings(study_id)


@app.patch("/cwe/settings/{study_id}", response_model=StudyWorkloadSettings, tags=["Settings"])
def update_study_settings(study_id: str, payload: StudyWorkloadSettingsUpdate) -> StudyWorkloadSettings:
    log.info("Handling settings update for study %s", study_id)
    return settings_service.update_settings(study_id, payload)


@app.get("/cwe/metrics/{coordinator_id}", response_model=CoordinatorMetricsResponse, tags=["Metrics"])
def read_coordinator_metrics(coordinator_id: str) -> CoordinatorMetricsResponse:
    log.info("Handling incoming request for /cwe/metrics/%s endpoint", coordinator_id)
    return metrics_service.get_metrics(coordinator_id)


@app.post("/cwe/metrics/{coordinator_id}", response_model=WeeklyLogModel, tags=["Metrics"])
def submit_coordinator_metrics(coordinator_id: str, payload: WeeklyLogSubmission) -> WeeklyLogModel:
    log.info("Handling weekly log submission for coordinator %s", coordinator_id)
    return metrics_service.submit_weekly_log(coordinator_id, payload)


@app.get("/cwe/rubric", response_model=RubricResponse, tags=["Rubric"])
def read_rubric() -> RubricResponse:
    return rubric_service.get_rubric()


@app.post("/cwe/rubric/score", response_model=RubricScoreResponse, tags=["Rubric"])
def score_rubric(payload: RubricSelectionModel) -> RubricScoreResponse:
    return rubric_service.score_rubric(payload)


@app.get("/analytics/workload", response_model=PortfolioWorkloadResponse, tags=["Analytics"])
def read_portfolio_workload(
    include_breakdown: bool = Query(False, alias="includeBreakdown"),
    force: bool = Query(False),
) -> PortfolioWorkloadResponse:
    log.info(
        "Handling incoming request for /analytics/workload (breakdown=%s, force=%s)",
        include_breakdown,
        force,
    )
    return workload_service.get_portfolio(include_breakdown=include_breakdown, force=force)


@app.get("/analytics/workload/trend", response_model=WorkloadTrendResponse, tags=["Analytics"])
def read_workload_trend() -> WorkloadTrendResponse:
    log.info("Handling incoming request for /analytics/workload/trend endpoint")
    return workload_service.get_trend()


@app.get(
    "/analytics/workload/coordinators",
    response_model=CoordinatorLoadsResponse,
    tags=["Analytics"],
)
def read_coordinator_loads(force: bool = Query(False)) -> CoordinatorLoadsResponse:
    log.info("Handling incoming request for /analytics/workload/coordinators endpoint")
    return workload_service.get_coordinator_loads(force=force)


@app.post("/analytics/workload/refresh", response_model=RefreshResponse, tags=["Analytics"])
def refresh_workload() -> RefreshResponse:
    log.info("Handling snapshot refresh request")
    return workload_service.refresh_snapshots()
