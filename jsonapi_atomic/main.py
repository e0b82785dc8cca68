import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jsonapi_atomic.api.v1 import router as api_v1_router
from jsonapi_atomic.config import settings
from jsonapi_atomic.core.exceptions import InvalidRequestError, JsonApiException
from jsonapi_atomic.core.logging import configure_logging
from jsonapi_atomic.core.media_types import JSON_API, JSON_API_ATOMIC
from jsonapi_atomic.database import init_db
from jsonapi_atomic.utils.response import error_response, merge_vary, server_error_document


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    configure_logging(settings.LOG_LEVEL)
    await init_db()
    logger.info("Atomic operations endpoint %s", settings.ATOMIC_ENDPOINT if settings.ATOMIC_ENABLED else "disabled")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="A JSON:API server implementing the atomic operations extension",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def is_atomic_request(request: Request) -> bool:
    return settings.ATOMIC_ENABLED and request.url.path.rstrip("/") == settings.ATOMIC_ENDPOINT.rstrip("/")


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header, and Vary: Accept on negotiated responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    if is_atomic_request(request):
        merge_vary(response, "Accept")
    return response


@app.exception_handler(JsonApiException)
async def jsonapi_exception_handler(request: Request, exc: JsonApiException):
    """Render JSON:API error documents."""
    media_type = JSON_API_ATOMIC if is_atomic_request(request) else JSON_API
    return error_response(exc, media_type)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI/Pydantic validation errors as JSON:API errors."""
    messages = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", []))
        msg = error.get("msg", "Validation error")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return error_response(
        InvalidRequestError("; ".join(messages) if messages else "Invalid request"),
        JSON_API,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=server_error_document(),
        media_type=JSON_API_ATOMIC if is_atomic_request(request) else JSON_API,
    )


# Include API routers
app.include_router(api_v1_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "JSON:API Atomic Operations server",
        "docs": "/docs",
        "atomic_endpoint": settings.ATOMIC_ENDPOINT if settings.ATOMIC_ENABLED else None,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
