from .chat import router as chat_router
from .utility import router as utility_router

__all__ = [
    "chat_router",
    "utility_router",
]
