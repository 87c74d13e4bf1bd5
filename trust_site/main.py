"""
FastAPI application entry point.
Wires logging, CORS, rate limiting, error mapping and the API routers.
"""
from typing import Optional

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging
import time

from trust_site.config import settings
from trust_site.exceptions import TrustSiteError
from trust_site.services.cloudinary_service import validate_cloudinary_config
from trust_site.routes import gallery, cards, cms, contact
from trust_site.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Credentials are allowed for the admin session cookie, so origins must be explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,  # Cache preflight requests for 1 hour
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and duration."""
    started = time.perf_counter()
    label = f"{request.method} {request.url.path}"

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Error processing {label}: {type(e).__name__}: {str(e)}", exc_info=True)
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{label} -> {response.status_code} ({elapsed_ms:.0f} ms)")
    return response


app.include_router(gallery.router, prefix="/api", tags=["gallery"])
app.include_router(cards.router, prefix="/api", tags=["home cards"])
app.include_router(cms.router, prefix="/api", tags=["CMS"])
app.include_router(contact.router, prefix="/api", tags=["contact"])


def error_response(
    request: Request,
    status_code: int,
    content: dict,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """
    Build a JSON error response.

    Error responses produced by exception handlers bypass the CORS
    middleware, so the allowed origin is echoed here.
    """
    response = JSONResponse(status_code=status_code, content=content, headers=headers)

    origin = request.headers.get("origin")
    if origin and origin in settings.CORS_ORIGINS:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Vary"] = "Origin"
    return response


@app.exception_handler(TrustSiteError)
async def trust_site_exception_handler(request: Request, exc: TrustSiteError):
    """Map service errors (invalid argument, not found, ...) to JSON responses."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return error_response(request, exc.status_code, {"error": exc.title, "detail": exc.message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Pass dict details through unchanged; wrap plain string details."""
    logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")

    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail, "detail": str(exc.detail)}
    return error_response(request, exc.status_code, content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported as 400, like every other bad input."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        {"error": "Validation error", "detail": errors},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {str(exc)}",
        exc_info=True
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"error": "Internal server error", "detail": "An unexpected error occurred"},
    )


@app.get("/")
async def root():
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/health/cloudinary")
async def health_check_cloudinary():
    """Report whether Cloudinary credentials are present."""
    if validate_cloudinary_config():
        return {
            "cloudinary": "configured",
            "status": "healthy",
            "cloud_name": settings.CLOUDINARY_CLOUD_NAME
        }
    return {
        "cloudinary": "not_configured",
        "status": "warning",
        "message": "Cloudinary credentials not set in environment variables"
    }


@app.on_event("startup")
async def startup_event():
    """Log the effective storage configuration."""
    logger.info(f"Allowed CORS origins: {', '.join(settings.CORS_ORIGINS)}")
    logger.info(f"Metadata document backend: {settings.DOCUMENT_BACKEND}")

    if not validate_cloudinary_config():
        logger.warning(
            "Cloudinary is not configured - uploads will fail and the gallery will be served empty"
        )
    if not settings.ADMIN_PASSWORD_HASH:
        logger.warning("ADMIN_PASSWORD_HASH not configured - admin routes will reject every request")
