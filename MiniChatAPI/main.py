import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from .chat_broadcast import Broadcaster
from .config import HOST, LOG_LEVEL, PORT, SSE_HEARTBEAT_INTERVAL, SSE_QUEUE_SIZE, STATIC_DIR
from .logging_config import configure_logging
from .routes import chat_router, utility_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    logger.info("App startup event")
    yield
    # Shutdown logic: end open chat streams so they deregister
    app.state.hub.close()
    logger.info("App shutdown event")


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return PlainTextResponse("Not Found", status_code=404)
    return await http_exception_handler(request, exc)


def create_app(hub: Optional[Broadcaster] = None, heartbeat_interval: int = SSE_HEARTBEAT_INTERVAL) -> FastAPI:
    """
    Build the chat application around a broadcast hub.

    Args:
        hub (Broadcaster, optional): Hub to serve. A new one is created if omitted.
        heartbeat_interval (int): Seconds between keep-alive comments on `/sse`.

    Returns:
        FastAPI: The configured application.
    """
    app = FastAPI(title="MiniChat API", lifespan=lifespan)
    app.state.hub = hub if hub is not None else Broadcaster(queue_size=SSE_QUEUE_SIZE)
    app.state.heartbeat_interval = heartbeat_interval

    # Include the chat publish/stream routes
    app.include_router(chat_router)

    # Include the chat shell and developer tool routes
    app.include_router(utility_router)

    # Public assets are served from the site root, behind every route
    app.mount("/", StaticFiles(directory=STATIC_DIR / "public"), name="public")

    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


configure_logging()

app = create_app()

# Run the application (for development)
if __name__ == "__main__":
    uvicorn.run("MiniChatAPI.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
