"""FastAPI application entry point for the Investor Platform API."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from investor_platform.app.config import get_settings
from investor_platform.app.errors import register_exception_handlers
from investor_platform.domain.schemas import HealthResponse
from investor_platform.infra.database import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create tables on startup, release the pool on shutdown."""
    await init_db()
    logger.info("Database initialised")
    yield
    await close_db()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="Investor Platform API",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware: allow all origins in debug mode for LAN/IP access
_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from investor_platform.app.routes.auth import router as auth_router
from investor_platform.app.routes.investors import router as investors_router
from investor_platform.app.routes.seller import router as seller_router
from investor_platform.app.routes.admin import router as admin_router
from investor_platform.app.routes.subscriptions import router as subscriptions_router
from investor_platform.app.routes.public import router as public_router

app.include_router(auth_router)
app.include_router(investors_router)
app.include_router(seller_router)
app.include_router(admin_router)
app.include_router(subscriptions_router)
app.include_router(public_router)


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Return service health status."""
    return HealthResponse(status="ok", service="investor-platform")


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "investor_platform.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
