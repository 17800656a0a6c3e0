"""Liveness and readiness probes."""
import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.di.container import ApplicationContainer as DependencyContainer
from api.shared.dtos import HealthCheckResponse
from infra.resources import DatabaseResource
from llm.adapter import CompletionAdapter

router = APIRouter()
logger = logging.getLogger("api.health")


@router.get("/healthz", response_model=HealthCheckResponse)
async def healthz():
    """Liveness: the process is serving requests."""
    return HealthCheckResponse(status="ok")


@router.get("/readyz", response_model=HealthCheckResponse, responses={503: {"model": HealthCheckResponse}})
@inject
async def readyz(
    database: DatabaseResource = Depends(
        Provide[DependencyContainer.infrastructure.database]
    ),
    completion_adapter: CompletionAdapter = Depends(
        Provide[DependencyContainer.services.completion_adapter]
    ),
):
    """Readiness: the store answers and the upstream is reachable."""
    dependencies = {}
    try:
        await database.ping()
        dependencies["database"] = "ok"
    except Exception as e:
        logger.warning(f"Readiness: database unavailable: {e}")
        dependencies["database"] = "unavailable"

    try:
        await completion_adapter.probe()
        dependencies["upstream"] = "ok"
    except Exception as e:
        logger.warning(f"Readiness: upstream unavailable: {e}")
        dependencies["upstream"] = "unavailable"

    ready = all(state == "ok" for state in dependencies.values())
    body = HealthCheckResponse(
        status="ok" if ready else "unavailable", dependencies=dependencies
    )
    return JSONResponse(
        status_code=200 if ready else 503,
        content=body.model_dump(by_alias=True, mode="json"),
    )
