"""
farm_api.main -- FastAPI application factory.

Error envelope:
    FarmLedgerError      -> its ``http_status`` (400 or 404), ``{success:
                            false, message, code}``
    RequestValidationError -> 400, code VALIDATION_ERROR with field details
    SQLAlchemyError      -> 500, the request's unit already rolled back

``app`` is the module-level instance for an ASGI server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from farm_api import __version__
from farm_api.routes import accounting, posting
from farm_api.schemas import ErrorResponse
from farm_api.settings import Settings, load_settings
from farm_kernel.db.engine import create_tables, init_engine_from_url, reset_engine
from farm_kernel.exceptions import FarmLedgerError
from farm_kernel.logging_config import get_logger

logger = get_logger("api")


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(by_alias=True)),
    )


async def farm_ledger_error_handler(request: Request, exc: FarmLedgerError) -> JSONResponse:
    logger.info(
        "request_rejected",
        extra={
            "path": request.url.path,
            "exc_code": exc.code,
            "http_status": exc.http_status,
            "error_message": str(exc),
        },
    )
    return _error(exc.http_status, ErrorResponse(message=str(exc), code=exc.code))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in error.get("loc", ())), "message": error.get("msg", "")}
        for error in exc.errors()
    ]
    return _error(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(message="Invalid request", code="VALIDATION_ERROR", details=details),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "storage_failure",
        extra={"path": request.url.path, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(message="Storage failure; nothing was posted", code="STORAGE_FAILURE"),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_engine_from_url(settings.database_url, echo=settings.sql_echo)
        if settings.create_tables:
            create_tables()
        yield
        reset_engine()

    app = FastAPI(title="Farm Ledger Posting API", version=__version__, lifespan=lifespan)
    app.add_exception_handler(FarmLedgerError, farm_ledger_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
    app.include_router(accounting.router)
    app.include_router(posting.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.app_env}

    return app


app = create_app()
