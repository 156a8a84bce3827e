"""
FastAPI application instance
"""
import time
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import settings
from app.core.database import init_db
from app.core.errors import InternalError, LandListingsError
from app.core.rate_limiter import SlidingWindowRateLimiter, resolve_client_ip
from app.api import api_router
from app.services.media_service import MediaService
import logging

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

# Probes are never rate limited or request-logged
UNLIMITED_PATHS = {
    "/",
    f"{settings.API_PREFIX}/health",
    f"{settings.API_PREFIX}/health/deep",
    f"{settings.API_PREFIX}/version",
}


def _error_response(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI):
    """Translate every failure into the {success, message, errors?} envelope"""

    @app.exception_handler(LandListingsError)
    async def listings_error_handler(request: Request, exc: LandListingsError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return _error_response(400, "Validation failed", errors)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc,
                     exc_info=True)
        error = InternalError()
        if not settings.is_production:
            error.errors = [str(exc)]
        return JSONResponse(status_code=error.status_code, content=error.to_envelope())


def register_middleware(app: FastAPI):
    """Body size ceiling, global rate limit and request logging"""

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.MAX_BODY_BYTES:
            limit_mb = settings.MAX_BODY_BYTES // (1024 * 1024)
            return _error_response(413, f"Request body too large. Maximum size is {limit_mb}MB.")
        return await call_next(request)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if settings.RATE_LIMIT_ENABLED and request.url.path not in UNLIMITED_PATHS \
                and request.method != "OPTIONS":
            client_ip = resolve_client_ip(request, trusted_proxy=settings.TRUST_PROXY_HEADERS)
            allowed, retry_after = app.state.rate_limiter.hit(f"api:{client_ip}")
            if not allowed:
                return _error_response(
                    429,
                    "Too many requests from this IP, please try again later.",
                    headers={"Retry-After": str(retry_after)},
                )
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s %.0fms", request.method, request.url.path,
                    response.status_code, duration_ms)
        return response


def create_application() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API for managing land listings and their images",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.state.rate_limiter = SlidingWindowRateLimiter(
        limit=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )

    register_exception_handlers(app)
    register_middleware(app)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Include API router with prefix
    app.include_router(api_router, prefix=settings.API_PREFIX)

    # Startup event
    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
        logger.info(f"API documentation available at: /docs")

        # Initialize database tables if they don't exist
        try:
            init_db()
            logger.info("✓ Database initialized successfully")
        except Exception as e:
            logger.error(f"✗ Database initialization failed: {e}")

        MediaService.get_instance()

    # Shutdown event
    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down application...")

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "endpoints": {
                "listings": f"{settings.API_PREFIX}/listings",
                "health": f"{settings.API_PREFIX}/health",
                "version": f"{settings.API_PREFIX}/version",
            },
        }

    return app


# Create application instance
app = create_application()
