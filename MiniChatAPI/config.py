"""
Configuration module for MiniChatAPI.

Loads environment variables for local development and exposes the settings
the server and the chat stream read at startup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv


def _load_env() -> None:
    """
    Load environment variables for local development.

    Prefer `.env.development` in the project root. Fallback to `.env` if the
    development file is missing.

    Returns:
        None
    """
    root = Path(__file__).resolve().parents[1]
    dev_env = root / ".env.development"
    default_env = root / ".env"
    if dev_env.exists():
        load_dotenv(dev_env)
    elif default_env.exists():
        load_dotenv(default_env)


_load_env()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from exc


HOST = os.getenv("HOST", "0.0.0.0")
"""str: Bind address used when running the module directly."""

PORT = _int_env("PORT", 3000)
"""int: Bind port used when running the module directly."""

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
"""str: Root log level."""

SSE_HEARTBEAT_INTERVAL = _int_env("SSE_HEARTBEAT_INTERVAL", 25)  # seconds; must be < typical 55s proxy idle timeout
"""int: Seconds between keep-alive comments on the chat stream. 0 disables them."""

SSE_QUEUE_SIZE = _int_env("SSE_QUEUE_SIZE", 100)
"""int: Pending messages a single subscriber may hold before new ones are dropped. 0 means unbounded."""

STATIC_DIR = Path(__file__).resolve().parent / "static"
"""pathlib.Path: Chat shell HTML and public assets."""
