"""
FastAPI application factory for the Hamlet economy inspection API.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hamlet.api.sessions import SessionManager
from hamlet.api.routers import config, economy, errors, settlements, simulation

# Load .env from the project root first, then CWD
_project_root = Path(__file__).resolve().parents[3]  # src/hamlet/api/app.py → project root
load_dotenv(_project_root / ".env")
load_dotenv(Path.cwd() / ".env")


def _cors_origins() -> list[str]:
    """Comma-separated ``HAMLET_CORS_ORIGINS``; every origin when unset."""
    raw = os.environ.get("HAMLET_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Hamlet Economy API",
        description="Inspect sandbox runs of the settlement economy engine",
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.session_manager = SessionManager()

    application.include_router(simulation.router, prefix="/api/simulation", tags=["simulation"])
    application.include_router(settlements.router, prefix="/api/settlements", tags=["settlements"])
    application.include_router(economy.router, prefix="/api/economy", tags=["economy"])
    application.include_router(config.router, prefix="/api/config", tags=["config"])
    application.include_router(errors.router, prefix="/api/errors", tags=["errors"])

    @application.get("/api/health")
    def health_check():
        return {"status": "ok"}

    return application


app = create_app()
