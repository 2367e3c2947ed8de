# app/main.py
"""
Contact desk API.
Thin HTTP layer over the SendGrid Marketing Contacts API plus a local cache.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.middleware import RequestContextMiddleware
from app.routes import contacts, health, segments
from app.services.errors import ContactDeskError
from app.services.redis_client import cache_redis
from app.services.sendgrid.client import sendgrid_client

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        sendgrid_configured=settings.sendgrid_configured(),
        cache_backend="redis" if cache_redis.configured else "memory",
    )

    if cache_redis.configured:
        await cache_redis.initialize()

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await sendgrid_client.close()
    except Exception as e:
        logger.error("Error closing SendGrid client", error=str(e))
        shutdown_errors.append(f"SendGrid: {e}")

    if cache_redis.configured:
        await cache_redis.close()

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Contact Desk",
    description="Staff tool for SendGrid contacts, tags and segments",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(contacts.router)
app.include_router(segments.router)


@app.exception_handler(ContactDeskError)
async def contact_desk_error_handler(request: Request, exc: ContactDeskError):
    """Render service-layer failures as the JSON error envelope."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        error_kind=exc.kind,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters answer 400, like service validation."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"{location}: {message}" if location else message,
            "error_kind": "validation_error",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
