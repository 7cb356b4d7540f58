from fastapi import APIRouter
from fastapi.responses import FileResponse

from ..config import STATIC_DIR
from ..schemas import EchoResponse, SampleJsonResponse

router = APIRouter()


@router.get("/", include_in_schema=False)
def chat_app():
    """Serve the chat shell page."""
    return FileResponse(STATIC_DIR / "chat.html", media_type="text/html")


@router.get("/json", response_model=SampleJsonResponse)
def respond_json():
    return SampleJsonResponse()


@router.get("/echo", response_model=EchoResponse)
def respond_echo(input: str = ""):
    """
    Return the `input` query parameter in several formats.

    Args:
        input (str): Text to echo. Defaults to an empty string.

    Returns:
        EchoResponse: The text as-is, upper-cased, its length and reversed.
    """
    return {
        "normal": input,
        "shouty": input.upper(),
        "charCount": len(input),
        "backwards": input[::-1],
    }
