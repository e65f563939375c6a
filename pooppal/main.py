"""PoopPal Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .config import get_settings
from .database import get_store
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import friends_router, logs_router, session_router, stats_router

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else settings.log_level)
    logger.info(f"Starting PoopPal Backend API (debug={settings.debug})")
    yield
    logger.info("Shutting down PoopPal Backend API")


app = FastAPI(
    title="PoopPal Backend API",
    description="Bowel-movement logging, friends and statistics backed by Supabase",
    version=__version__,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(session_router)
app.include_router(logs_router)
app.include_router(stats_router)
app.include_router(friends_router)


@app.get("/")
async def root():
    """Service banner."""
    return {
        "service": "pooppal-backend",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Health check with an actual store round-trip."""
    db_status = "disconnected"
    try:
        await get_store().ping()
        db_status = "connected"
    except Exception as e:
        # Misconfigured clients raise their own exception types from create_client
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
    }
