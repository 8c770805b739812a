"""
Next Rounds AI - Main Application

FastAPI backend with:
- Supabase auth (bearer tokens) and hosted Postgres
- Stripe subscriptions and webhooks
- Gemini for interview question generation
- Free/Pro usage metering

Run: uvicorn nextrounds.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nextrounds.api import api_router
from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import setup_logging, get_logger

settings = get_settings()
setup_logging(level=settings.log_level, json_logs=settings.json_logs)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Starting Next Rounds API (ai={'configured' if settings.ai_configured else 'mock'}, "
        f"stripe={'configured' if settings.stripe_configured else 'missing'})"
    )
    yield
    logger.info("Shutting down Next Rounds API")


# Create FastAPI app
app = FastAPI(
    title="Next Rounds AI",
    description="""
    Interview question generator.

    ## Features
    - **Questions**: Stage-specific questions with answer frameworks from a JD + resume
    - **Usage**: 3 free generations per month, unlimited on Pro
    - **Billing**: Stripe Checkout, billing portal and webhook reconciliation
    - **Export**: PDF for everyone, CSV and DOCX on Pro
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Next Rounds AI"}


@app.get("/health", tags=["Health"])
def health_check():
    """Detailed health check."""
    from nextrounds.db.postgres import test_postgres_connection
    from nextrounds.db.supabase import test_supabase_connection

    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "supabase": "connected" if test_supabase_connection() else "disconnected",
        "ai": "configured" if settings.ai_configured else "mock",
    }
