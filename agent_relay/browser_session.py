"""
Browser-facing side of a relay session.

A BrowserSession terminates one client WebSocket. Binary frames from the
browser are handed to the paired agent session unmodified, and agent audio is
written back as binary frames. Failures on either path are logged and never
raised, so losing audio while the agent handshake completes degrades the call
instead of ending it.
"""

import logging
import uuid
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from agent_relay.config.constants import CLOSE_NORMAL, LOGGER_NAME
from agent_relay.errors import ProtocolStateError

logger = logging.getLogger(LOGGER_NAME)

CloseHandler = Callable[["BrowserSession"], Awaitable[None]]


class BrowserState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class BrowserSession:
    """One browser client connection, paired with at most one agent session."""

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex
        self.state = BrowserState.OPEN
        self.agent = None
        self.frames_received = 0
        self.frames_sent = 0
        self._close_handlers: List[CloseHandler] = []

    def attach_agent(self, agent) -> None:
        """Pair this browser with its agent session."""
        if self.agent is not None and self.agent is not agent:
            raise ValueError(f"Browser session {self.connection_id} is already paired")
        self.agent = agent

    def on_close(self, handler: CloseHandler) -> None:
        """Register an async callback run once when the session closes."""
        self._close_handlers.append(handler)

    @property
    def is_open(self) -> bool:
        return (
            self.state is BrowserState.OPEN
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def run(self) -> None:
        """Read client frames and forward them to the agent until the client goes away."""
        while self.state is BrowserState.OPEN:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(
                    f"Browser client {self.connection_id} disconnected (code {message.get('code')})"
                )
                break

            frame = message.get("bytes")
            if frame is None:
                logger.warning(f"Ignoring text frame from browser client {self.connection_id}")
                continue
            self.frames_received += 1
            await self.forward_to_agent(frame)

    async def forward_to_agent(self, frame: bytes) -> bool:
        """
        Forward one browser frame to the paired agent session.

        Never raises: a frame the agent cannot take yet is logged and dropped.

        Returns:
            bool: True if the agent accepted the frame for sending
        """
        if self.agent is None:
            logger.warning(f"No agent session for browser client {self.connection_id}")
            return False
        try:
            return await self.agent.send(frame)
        except ProtocolStateError as e:
            logger.warning(f"Dropping audio from browser client {self.connection_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error sending audio data: {e}", exc_info=True)
            return False

    async def forward_to_browser(self, frame: bytes) -> bool:
        """
        Write one agent audio frame to the browser as a binary message.

        A no-op when the client connection is not open.
        """
        if not self.is_open:
            return False
        try:
            await self.websocket.send_bytes(frame)
        except Exception as e:
            logger.warning(f"Failed to send audio to browser client {self.connection_id}: {e}")
            await self.close()
            return False
        self.frames_sent += 1
        return True

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close the client connection and notify close handlers. Idempotent."""
        if self.state is not BrowserState.OPEN:
            return
        self.state = BrowserState.CLOSING

        if (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        ):
            try:
                await self.websocket.close(code=code, reason=reason)
            except Exception as e:
                logger.debug(f"Error closing browser connection {self.connection_id}: {e}")

        self.state = BrowserState.CLOSED
        logger.info(
            f"Browser session {self.connection_id} closed "
            f"({self.frames_received} frames in, {self.frames_sent} frames out)"
        )
        for handler in self._close_handlers:
            try:
                await handler(self)
            except Exception as e:
                logger.error(f"Error in browser close handler: {e}", exc_info=True)
