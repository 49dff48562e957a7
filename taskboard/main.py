import logging
from contextlib import asynccontextmanager
from http import HTTPStatus

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taskboard.cache.layer import DocumentCache
from taskboard.core.config import Settings, get_settings
from taskboard.core.logging import setup_logging
from taskboard.errors import (
    InvalidRequestError,
    StorageError,
    TaskboardError,
    TaskNotFoundError,
)
from taskboard.models import utc_now_iso
from taskboard.routers import tasks
from taskboard.services.task_service import TaskService
from taskboard.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    TaskNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _error_response(request: Request, status_code: int, message, settings: Settings):
    if settings.is_production and status_code >= 500:
        message = "Internal server error"

    body = {
        "statusCode": status_code,
        "timestamp": utc_now_iso(),
        "path": request.url.path,
        "message": message,
    }
    if not settings.is_production:
        body["error"] = HTTPStatus(status_code).phrase
        body["method"] = request.method
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(TaskboardError)
    async def taskboard_error_handler(request: Request, exc: TaskboardError):
        status_code = _STATUS_BY_ERROR.get(
            type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        if status_code >= 500:
            logger.error(
                f"HTTP {status_code} Error: {request.method} {request.url.path}",
                exc_info=exc if not settings.is_production else None,
            )
        else:
            logger.warning(
                f"HTTP {status_code} Warning: {request.method} {request.url.path} - {exc.message}"
            )
        return _error_response(request, status_code, exc.message, settings)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
            for error in exc.errors()
        ]
        logger.warning(
            f"HTTP 400 Warning: {request.method} {request.url.path} - {messages}"
        )
        return _error_response(request, status.HTTP_400_BAD_REQUEST, messages, settings)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    store = DocumentStore(
        settings.data_path, cache=DocumentCache(ttl=settings.cache_ttl_seconds)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving tasks from {store.data_path} ({settings.environment})")
        yield
        logger.info(f"Document cache stats: {store.cache.get_stats()}")

    app = FastAPI(
        title="Task Management API",
        description="Task management API backed by a single JSON document",
        swagger_ui_parameters={"displayRequestDuration": True},
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.task_service = TaskService(store)

    register_exception_handlers(app, settings)

    # Include routers
    app.include_router(tasks.router)

    @app.get("/")
    async def root():
        return {
            "message": "Welcome to Task Management API",
            "docs": "/docs",
            "version": "1.0.0",
        }

    @app.get("/health")
    async def health_check():
        report = await store.check_health()
        body = {
            "status": "healthy" if report.healthy else "unhealthy",
            "storage": report.model_dump(by_alias=True, exclude_none=True),
        }
        status_code = (
            status.HTTP_200_OK
            if report.healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        return JSONResponse(status_code=status_code, content=body)

    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
