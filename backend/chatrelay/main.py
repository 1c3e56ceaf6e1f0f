"""Chat Relay Application.

This is the main entry point for the chat relay service. Clients connect
over a WebSocket, send chat records, and receive every record from every
other client plus a replay of recent history on join.

Modules:
    - chat: connection registry, broadcast & history engine, WebSocket router
    - config: YAML + environment configuration
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from chatrelay.chat.engine import engine
from chatrelay.chat.router import router as chat_router
from chatrelay.config import get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    logger.info(
        f"Chat relay running on http://{config.server.host}:{config.server.port}"
    )

    yield  # Application runs here

    # Shutdown
    engine.reset()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Chat Relay",
    description="Real-time WebSocket chat relay with bounded history replay",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status plus the number of live connections and stored records.
    """
    return {
        "status": "ok",
        "connections": engine.get_connection_count(),
        "history": len(engine.get_history()),
    }


# Static assets are mounted last so the routes above take precedence.
_static_dir = Path(get_config().server.static_dir)
if _static_dir.is_dir():
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="static")
    logger.info("Serving static files from %s", _static_dir)
