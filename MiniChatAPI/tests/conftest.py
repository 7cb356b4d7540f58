import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Keep test streams quiet unless a test asks for heartbeats.
os.environ.setdefault("SSE_HEARTBEAT_INTERVAL", "0")

from MiniChatAPI.chat_broadcast import Broadcaster
from MiniChatAPI.main import create_app


class RecordingSink:
    """Stand-in subscriber sink that remembers what it was sent."""

    def __init__(self, fail=False):
        self.messages = []
        self.fail = fail
        self.closed = False

    def write(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        self.messages.append(message)

    def close(self):
        self.closed = True


@pytest.fixture
def hub():
    broadcaster = Broadcaster()
    yield broadcaster
    broadcaster.close()


@pytest.fixture
def app(hub):
    return create_app(hub=hub, heartbeat_interval=0)


@pytest.fixture
def test_client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def recording_sink(hub):
    sink = RecordingSink()
    handle = hub.registry.add(sink)
    yield sink
    hub.registry.remove(handle)


@pytest.fixture
def make_recording_sink():
    return RecordingSink
