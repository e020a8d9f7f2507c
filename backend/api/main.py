"""
Main FastAPI application entry point.

Responsibilities:
- Initialize FastAPI app
- Configure CORS
- Map engine errors to HTTP responses
- Include routers
- Setup startup/shutdown events
"""
from __future__ import annotations

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import access, actions, team_members, team_resources, user_managers
from config import log_missing_env_vars, settings
from models.database import close_db, get_pool_status, init_db
from services.errors import AccessControlError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
)

app = FastAPI(title="Team Access API", version="1.0.0")


def _normalize_origin(origin: str) -> str:
    """Normalize origin values for CORS checks."""
    return origin.strip().rstrip("/")


cors_origins: list[str] = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
    settings.FRONTEND_URL,
]
allowed_origins = {_normalize_origin(origin) for origin in cors_origins if origin}

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AccessControlError)
async def access_control_exception_handler(
    request: Request, exc: AccessControlError
) -> JSONResponse:
    """Return typed engine failures with their status code and error kind."""
    logging.info(
        "Access control error on %s %s: %s",
        request.method,
        request.url.path,
        exc.code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions, including store failures."""
    logging.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error"},
    )


# Routes
app.include_router(actions.router, prefix="/api/actions", tags=["actions"])
app.include_router(team_members.router, prefix="/api/team-members", tags=["team-members"])
app.include_router(user_managers.router, prefix="/api/user-managers", tags=["user-managers"])
app.include_router(team_resources.router, prefix="/api/team-resources", tags=["team-resources"])
app.include_router(access.router, prefix="/api", tags=["access"])


@app.on_event("startup")
async def startup() -> None:
    """Initialize database on startup."""
    # Alembic handles migrations; AUTO_CREATE_TABLES is for demos and tests
    if settings.AUTO_CREATE_TABLES:
        await init_db()
        logging.info("Database tables created")
    log_missing_env_vars(logging.getLogger("config"))
    logging.info("Database connection pool ready")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Clean up database connections on shutdown."""
    logging.info("Shutting down, closing database connections...")
    await close_db()
    logging.info("Database connections closed")


@app.get("/")
async def root_health_check() -> dict[str, str]:
    """Root endpoint exposing the health check payload."""
    logging.info("Root health check requested")
    return await health_check()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    logging.info("Health check requested")
    return {"status": "ok"}


@app.get("/health/db")
async def db_health_check() -> dict[str, object]:
    """Database health check with pool status."""
    return {
        "status": "ok",
        "pool": get_pool_status(),
    }
