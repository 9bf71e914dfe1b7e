"""textchat backend application.

This is the main entry point for the textchat service: a real-time chat
where authenticated users exchange broadcast messages over a WebSocket, with
users and message history stored in DuckDB.

Modules:
    - chat: WebSocket sessions, presence and message routing
    - identity: user records, password verification, signup route
    - messages: durable message log
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from textchat.chat.router import STATIC_DIR, router as chat_router
from textchat.chat.server import ChatServer, get_chat_server, set_chat_server
from textchat.config import get_config
from textchat.identity import IdentityStore
from textchat.identity.router import router as identity_router
from textchat.messages import MessageLog

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Per-request access lines drown out the chat events.
for _noisy in (
    "uvicorn.access",
    "duckdb",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in textchat.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    identity_store = IdentityStore.get_instance(
        db_path=config.database.path,
        bcrypt_rounds=config.auth.bcrypt_rounds,
    )
    message_log = MessageLog.get_instance(db_path=config.database.path)

    set_chat_server(ChatServer(
        identity_store=identity_store,
        message_log=message_log,
        history_limit=config.chat.history_limit,
        max_message_length=config.chat.max_message_length,
    ))
    logger.info(
        "Chat server ready on http://%s:%s (db=%s)",
        config.server.host,
        config.server.port,
        config.database.path,
    )

    yield  # Application runs here

    # Shutdown
    server = get_chat_server()
    if server is not None:
        await server.drain()
    set_chat_server(None)
    MessageLog.reset_instance()
    IdentityStore.reset_instance()
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="textchat API",
    description="Real-time chat with authentication and durable history",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Register all routers
app.include_router(chat_router)
app.include_router(identity_router)

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
