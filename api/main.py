import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.di.container import ApplicationContainer as DependencyContainer
from api.shared.dtos import ErrorResponse
from api.shared.entities.registry import BaseEntity
from api.shared.exceptions import StoreUnavailableError
from core.logging import configure_logging
from core.settings import SETTINGS, Settings

logger = logging.getLogger("api")


class CustomFastAPI(FastAPI):
    container: DependencyContainer
    settings: Settings


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    logger.info("Starting application initialization...")
    start_time = time.time()

    try:
        logger.info("Initializing database connection...")
        db_start = time.time()
        db_resource = _app.container.infrastructure.database()
        await db_resource.init()
        if _app.settings.DATABASE.DATABASE_AUTO_CREATE:
            await db_resource.create_schema(BaseEntity.metadata)
        await db_resource.ping()
        logger.info(f"✅ Database connection established in {time.time() - db_start:.2f}s")

        logger.info("Initializing upstream HTTP client...")
        http_resource = _app.container.infrastructure.http_client()
        await http_resource.init()
        logger.info(
            f"✅ Completion provider '{_app.settings.LLM.LLM_PROVIDER}' ready "
            f"(timeout {_app.settings.LLM.LLM_TIMEOUT_SECONDS}s, "
            f"{_app.settings.LLM.LLM_MAX_ATTEMPTS} attempts)"
        )

        conversation_service = _app.container.services.conversation_service()
        resumed = await conversation_service.resume_pending_purges()
        if resumed:
            logger.info(f"Re-armed {resumed} pending purge(s)")

        logger.info(f"✅ Application startup completed in {time.time() - start_time:.2f}s")
    except Exception as e:
        logger.exception(f"❌ Failed to initialize application: {str(e)}")
        raise

    yield

    try:
        await _app.container.infrastructure.purge_scheduler().shutdown()
        await _app.container.infrastructure.http_client().shutdown()
        await _app.container.infrastructure.database().shutdown()
        logger.info("Application shutdown complete")
    except Exception:
        logger.exception("Error during shutdown")


def _error_body(status_code: int, error: str, detail: str, **extra) -> dict:
    return ErrorResponse(
        error=error, detail=detail, status_code=status_code, **extra
    ).model_dump(exclude_none=True)


def register_exception_handlers(_app: FastAPI) -> None:
    @_app.exception_handler(404)
    async def not_found_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=404,
            content=_error_body(404, "Not Found", f"{exc.detail} : {request.url}"),
        )

    @_app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(422, "Validation Error", str(exc)),
        )

    @_app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc.details}")
        return JSONResponse(
            status_code=500,
            content=_error_body(
                500, "Store Unavailable", exc.message, error_code=exc.error_code
            ),
        )

    @_app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content=_error_body(
                500, "Internal Server Error", "An unexpected error occurred"
            ),
        )


def create_fastapi_app(settings: Optional[Settings] = None) -> CustomFastAPI:
    settings = settings or SETTINGS
    configure_logging(settings.APP)

    _app = CustomFastAPI(
        title="Conversation Store API",
        description="Conversations and messages with resilient completion generation",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    _app.settings = settings

    # Initialize dependency container
    _app.container = DependencyContainer()
    _app.container.config.from_dict(settings.model_dump())

    _app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include feature routers
    from api.features.conversation.router import router as conversation_router
    from api.features.health.router import router as health_router

    _app.include_router(conversation_router, prefix="/conversations", tags=["Conversations"])
    _app.include_router(health_router, tags=["Health"])

    register_exception_handlers(_app)
    return _app


app = create_fastapi_app()


if __name__ == "__main__":
    uvicorn.run(app, host=SETTINGS.APP.HOST, port=SETTINGS.APP.PORT)
