import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.deps import get_rules, get_settings
from src.app_shell.config import validate_ops_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    rules = get_rules()
    validate_ops_rules(rules)
    logger.info("Rules loaded from %s", settings.rules_path)

    yield


app = FastAPI(
    title="Creator Newsletter API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from src.api.routes import (  # noqa: E402
    admin_newsletter,
    cron,
    public_newsletter,
)

app.include_router(
    admin_newsletter.router, prefix="/api/admin/newsletter", tags=["Admin Newsletter"]
)
app.include_router(public_newsletter.router, prefix="/api/public", tags=["Public Newsletter"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
