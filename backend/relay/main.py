"""Room Relay application.

This is the main entry point for the relay service: a Socket.IO server that
fans chat messages out to every connected client and replays recent history
to newcomers, mounted next to a small FastAPI app for health and inspection.

Modules:
    - chat.manager: connection lifecycle, rooms, message buffer and fan-out
    - chat.sockets: Socket.IO server and event handlers
    - chat.router: read-only HTTP endpoints
    - config: YAML + environment configuration
"""
import logging
from contextlib import asynccontextmanager

import socketio
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay.chat import sockets
from relay.chat.router import router as relay_router
from relay.config import get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in relay.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    logger.info(
        "Relay ready (buffer capacity=%d, retention=%dms, sync window=%dms)",
        config.buffer.capacity,
        config.buffer.retention_ms,
        config.buffer.sync_window_ms,
    )

    yield  # Application runs here

    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Room Relay API",
    description="Real-time message relay with recent-history sync",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(relay_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status plus the live connection count and buffer size.
    """
    return {
        "status": "ok",
        "connections": sockets.manager.live_count(),
        "bufferedMessages": len(sockets.manager.buffer),
    }


# Socket.IO handles /socket.io; everything else falls through to FastAPI
asgi_app = socketio.ASGIApp(sockets.sio, other_asgi_app=app)


def run() -> None:
    """Start the relay with uvicorn on the configured host and port."""
    config = get_config()
    logger.info("Starting relay on %s:%s", config.server.host, config.server.port)
    uvicorn.run(
        asgi_app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level,
    )


if __name__ == "__main__":
    run()
