from fastapi import Request

from .chat_broadcast import Broadcaster


def get_hub(request: Request) -> Broadcaster:
    """
    Get the application's broadcast hub.

    This function is designed to be used as a FastAPI dependency so tests can
    build apps around their own hub or override it.

    Args:
        request (Request): The incoming request.

    Returns:
        Broadcaster: The hub created by ``create_app``.
    """
    return request.app.state.hub
