import asyncio
import json
import logging
from unittest.mock import AsyncMock

import pytest
from fastapi.websockets import WebSocketState

from agent_relay.agent.agent_session import AgentSession
from agent_relay.config.settings import RelaySettings
from agent_relay.models.agent_settings import default_agent_settings


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakeAgentSocket:
    """Stands in for a websockets client connection to the agent service."""

    def __init__(self):
        self.sent = []
        self.incoming = asyncio.Queue()
        self.closed = False

    async def send(self, data):
        self.sent.append(data)

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True

    def feed(self, item):
        self.incoming.put_nowait(item)

    def feed_json(self, payload):
        self.feed(json.dumps(payload))

    @property
    def audio_sent(self):
        return [m for m in self.sent if isinstance(m, bytes)]

    @property
    def messages_sent(self):
        return [json.loads(m) for m in self.sent if isinstance(m, str)]

    def sent_of_type(self, message_type):
        return [m for m in self.messages_sent if m.get("type") == message_type]


class FakeBrowserSocket:
    """Records what the relay does with a browser WebSocket."""

    def __init__(self):
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.incoming = asyncio.Queue()
        self.sent_bytes = []
        self.accepted = False
        self.close_code = None

    async def accept(self):
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def receive(self):
        return await self.incoming.get()

    async def send_bytes(self, data):
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("WebSocket is not connected")
        self.sent_bytes.append(data)

    async def close(self, code=1000, reason=None):
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED
        # the client acknowledges the close
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    def feed(self, frame):
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": frame})

    def feed_text(self, text):
        self.incoming.put_nowait({"type": "websocket.receive", "text": text})

    def disconnect(self, code=1000):
        self.client_state = WebSocketState.DISCONNECTED
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})


async def _eventually(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually():
    """Poll a predicate on the running loop until it holds."""
    return _eventually


@pytest.fixture
def agent_socket():
    return FakeAgentSocket()


@pytest.fixture
def agent_socket_factory():
    return FakeAgentSocket


@pytest.fixture
def browser_socket():
    return FakeBrowserSocket()


@pytest.fixture
def browser_socket_factory():
    return FakeBrowserSocket


@pytest.fixture
def relay_settings():
    return RelaySettings(api_key="test-api-key")


@pytest.fixture
def make_agent():
    """Build an AgentSession whose connector hands back the given fake socket."""

    def factory(socket, **kwargs):
        kwargs.setdefault("settings", default_agent_settings())
        connector = AsyncMock(return_value=socket)
        agent = AgentSession("test-api-key", connector=connector, **kwargs)
        return agent

    return factory
