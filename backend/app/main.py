import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .database import create_tables, dispose_engine
from .domain.errors import BookingDomainError
from .routers import availability, bookings, services
from .schemas import ErrorDetail, ErrorResponse
from .utils.request_id import (
    REQUEST_ID_HEADER,
    RequestIdLogFilter,
    generate_request_id,
    set_request_id,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdLogFilter())


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.auto_create_tables:
        await create_tables()
    logger.info("booking API started (env=%s)", settings.app_env)
    yield
    await dispose_engine()


async def request_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _error_response(status_code: int, error: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


async def domain_error_handler(_: Request, exc: BookingDomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("internal booking error: %s", exc.message)
        details = None if get_settings().is_production else exc.message
        return _error_response(exc.status_code, GENERIC_ERROR_MESSAGE, details)
    return _error_response(exc.status_code, exc.message)


async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return _error_response(exc.status_code, "Route not found")
    return _error_response(exc.status_code, str(exc.detail))


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            message=str(err.get("msg", "")),
        ).model_dump()
        for err in exc.errors()
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request data", details)


async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", exc_info=exc)
    details = None if get_settings().is_production else str(exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE, details)


def create_app() -> FastAPI:
    application = FastAPI(title="Ranch Booking API", lifespan=lifespan)
    application.middleware("http")(request_id_middleware)

    application.add_exception_handler(BookingDomainError, domain_error_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    @application.get("/health")
    async def health() -> dict[str, Any]:
        return {"success": True, "status": "ok", "environment": get_settings().app_env}

    @application.get("/test")
    async def smoke_test() -> dict[str, Any]:
        return {
            "success": True,
            "message": "API is working",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    application.include_router(services.router)
    application.include_router(availability.router)
    application.include_router(bookings.router)
    return application


configure_logging()
app = create_app()
