import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from inventory_tracker.api import categories, images, inventory, products
from inventory_tracker.core.config import Settings, settings
from inventory_tracker.core.errors import AppError, translate_db_error
from inventory_tracker.core.rate_limit import FixedWindowRateLimiter, rate_limit_middleware
from inventory_tracker.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(error: AppError) -> JSONResponse:
    body = ErrorResponse(error=error.message, code=error.code)
    return JSONResponse(status_code=error.status_code, content=body.model_dump())


def _internal_error() -> JSONResponse:
    body = ErrorResponse(error="Internal server error")
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _error_response(exc)

    @app.exception_handler(DBAPIError)
    async def db_error_handler(request: Request, exc: DBAPIError):
        error = translate_db_error(exc)
        if error is None:
            logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
            return _internal_error()
        logger.warning("Database error on %s %s: %s", request.method, request.url.path, exc.orig)
        return _error_response(error)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _internal_error()


def create_app(config: Settings = settings) -> FastAPI:
    app = FastAPI(
        title=f"{config.PROJECT_NAME} API",
        description="Products, categories, images and period-based inventory counts",
        version=config.VERSION,
    )

    if config.RATE_LIMIT_ENABLED:
        limiter = FixedWindowRateLimiter(
            config.RATE_LIMIT_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS
        )
        app.middleware("http")(rate_limit_middleware(limiter))

    # Outermost, so rate-limited responses carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(products.router)
    app.include_router(images.router)
    app.include_router(categories.router)
    app.include_router(inventory.router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
