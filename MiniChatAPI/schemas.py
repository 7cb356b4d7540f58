from typing import List

from pydantic import BaseModel, Field


class ChatMessageIn(BaseModel):
    message: str


class ChatAck(BaseModel):
    accepted: bool = True
    delivered_to: int = 0


class SampleJsonResponse(BaseModel):
    text: str = "hi"
    numbers: List[int] = Field(default_factory=lambda: [1, 2, 3])


# Field names match what the chat shell's developer tools expect
class EchoResponse(BaseModel):
    normal: str
    shouty: str
    charCount: int
    backwards: str


class StreamStatsResponse(BaseModel):
    subscribers: int
