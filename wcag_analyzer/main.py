import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from wcag_analyzer.config import get_settings
from wcag_analyzer.routers.accessibility import error_response, limiter, router as accessibility_router

settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": settings.LOG_LEVEL, "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description=(
        "Analyses images, HTML, web pages, and PDF documents for WCAG accessibility issues "
        "with vision and language models, and returns findings with severities and fixes."
    ),
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit exceeded for %s: %s", request.url.path, exc.detail)
    return error_response(429, f"Rate limit exceeded: {exc.detail}")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return error_response(400, "; ".join(messages) or "Invalid request.")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return error_response(500, str(exc) or "An unexpected error occurred.")


app.include_router(accessibility_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": f"Hello from {settings.APP_NAME}"}
