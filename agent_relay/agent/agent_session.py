"""
Agent session for the Deepgram Voice Agent WebSocket API.

An AgentSession owns one outbound connection and drives it through the
handshake: open the transport, send the Settings descriptor (right away or
after the peer's Welcome), then wait for SettingsApplied before the session is
considered active. Everything the session observes is published as discrete
events to handlers registered with on().
"""

import asyncio
import json
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from agent_relay.agent.states import (
    CONFIGURABLE_STATES,
    SENDABLE_STATES,
    AgentEvent,
    AgentState,
    EarlyAudioPolicy,
    HandshakeMode,
)
from agent_relay.config.constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_AGENT_URL,
    KEEPALIVE_INTERVAL,
    LOGGER_NAME,
    MAX_PENDING_FRAMES,
    MESSAGE_TYPE_ERROR,
    MESSAGE_TYPE_KEEP_ALIVE,
    MESSAGE_TYPE_SETTINGS_APPLIED,
    MESSAGE_TYPE_WELCOME,
    WS_MAX_SIZE,
    WS_PING_INTERVAL,
)
from agent_relay.errors import AgentConnectionError, ProtocolStateError
from agent_relay.models.agent_messages import (
    MESSAGE_MODELS,
    AgentErrorMessage,
    AgentMessage,
    parse_agent_message,
)
from agent_relay.models.agent_settings import AgentSettings

logger = logging.getLogger(LOGGER_NAME)

EventHandler = Callable[[Any], Awaitable[None]]

# Agent message types that are published under the event of the same name
MESSAGE_EVENTS: Dict[str, AgentEvent] = {
    message_type: AgentEvent(message_type) for message_type in MESSAGE_MODELS
}


class AgentSession:
    """
    One connection to the Deepgram Voice Agent service.

    State machine:
        CONNECTING -> OPENED -> AWAITING_HANDSHAKE -> CONFIGURED -> ACTIVE -> CLOSED
    with ERRORED reachable from any non-terminal state on transport errors or
    protocol violations. CLOSED and ERRORED are absorbing. configure() called
    from an Open or StateChanged handler moves OPENED straight to CONFIGURED.

    A session built without a descriptor stays in AWAITING_HANDSHAKE until the
    caller sends one with configure(). The agent only acknowledges a descriptor
    it was sent, so until then early audio follows the policy (BUFFER keeps at
    most MAX_PENDING_FRAMES frames) and the session never becomes ACTIVE.
    """

    def __init__(
        self,
        api_key: str,
        settings: Optional[AgentSettings] = None,
        url: str = DEFAULT_AGENT_URL,
        handshake_mode: HandshakeMode = HandshakeMode.ON_OPEN,
        early_audio_policy: EarlyAudioPolicy = EarlyAudioPolicy.FORWARD,
        session_id: str = "-",
        connector: Optional[Callable[..., Any]] = None,
    ):
        self.api_key = api_key
        self.settings = settings
        self.url = url
        self.handshake_mode = handshake_mode
        self.early_audio_policy = early_audio_policy
        self.session_id = session_id
        self.ws = None
        self.state = AgentState.CONNECTING
        self.configured = False
        self._connector = connector or websockets.connect
        self._handlers: Dict[AgentEvent, List[EventHandler]] = {}
        self._pending: Deque[bytes] = deque(maxlen=MAX_PENDING_FRAMES)
        self._recv_task: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Future] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._last_audio = 0.0

    @property
    def is_active(self) -> bool:
        return self.state is AgentState.ACTIVE

    @property
    def accepts_audio(self) -> bool:
        return self.state in SENDABLE_STATES

    def on(self, event: Union[AgentEvent, str], handler: EventHandler) -> None:
        """
        Register an async handler for an agent event.

        Handlers for one session run one at a time, in the order the transport
        delivered the underlying messages.
        """
        self._handlers.setdefault(AgentEvent(event), []).append(handler)

    async def _emit(self, event: AgentEvent, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                await handler(payload)
            except Exception as e:
                logger.error(
                    f"Error in {event.value} handler for session {self.session_id}: {e}",
                    exc_info=True,
                )

    async def _set_state(self, new_state: AgentState) -> bool:
        old_state = self.state
        if old_state is new_state or old_state.is_terminal:
            return False
        self.state = new_state
        logger.info(
            f"Agent session {self.session_id}: {old_state.value} -> {new_state.value}"
        )
        if new_state.is_terminal:
            await self._teardown()
        await self._emit(AgentEvent.STATE_CHANGED, (old_state, new_state))
        return True

    async def open(self):
        """
        Connect to the agent service.

        Returns:
            The open WebSocket connection, or None if the session was closed while connecting

        Raises:
            ProtocolStateError: If the session was already opened
            AgentConnectionError: If the connection could not be established
        """
        if self.state is not AgentState.CONNECTING:
            raise ProtocolStateError("open", self.state)

        headers = {"Authorization": f"Token {self.api_key}"}
        logger.info(f"Connecting to Deepgram Voice Agent for session {self.session_id}")
        logger.debug(f"Agent URL: {self.url}")

        connection_start = time.time()
        # close() cancels this task, so a slow connect never holds up teardown
        self._connect_task = asyncio.ensure_future(
            self._connector(
                self.url,
                additional_headers=headers,
                max_size=WS_MAX_SIZE,
                ping_interval=WS_PING_INTERVAL,
                compression=None,
            )
        )
        try:
            ws = await asyncio.wait_for(self._connect_task, timeout=CONNECTION_TIMEOUT)
        except asyncio.CancelledError:
            if self._connect_task.cancelled() and self.state.is_terminal:
                logger.info(f"Agent session {self.session_id} closed while connecting")
                return None
            raise
        except asyncio.TimeoutError as e:
            await self._fail(f"connection timed out after {CONNECTION_TIMEOUT}s")
            raise AgentConnectionError(
                f"Timeout while connecting to Deepgram Voice Agent (after {CONNECTION_TIMEOUT}s)"
            ) from e
        except Exception as e:
            await self._fail(e)
            raise AgentConnectionError(f"Failed to connect to Deepgram Voice Agent: {e}") from e

        if self.state.is_terminal:
            # closed by the coordinator while the connection was in flight
            logger.info(f"Agent session {self.session_id} closed before open completed")
            await ws.close()
            return None

        self.ws = ws
        logger.debug(
            f"Agent connection established in {time.time() - connection_start:.2f} seconds"
        )
        await self._set_state(AgentState.OPENED)
        await self._emit(AgentEvent.OPEN)
        # an Open or StateChanged handler may already have configured the session
        if self.state is AgentState.OPENED:
            await self._set_state(AgentState.AWAITING_HANDSHAKE)
        if self.state.is_terminal:
            return None

        self._last_audio = time.monotonic()
        self._recv_task = asyncio.create_task(self._recv_loop())
        self._keepalive_task = asyncio.create_task(self._keep_alive())

        if self.handshake_mode is HandshakeMode.ON_OPEN and not self.configured:
            if self.settings is not None:
                await self.configure(self.settings)
            else:
                logger.info(
                    f"No descriptor for session {self.session_id}, waiting for configure()"
                )
        return self.ws

    async def configure(self, settings: Optional[AgentSettings] = None) -> bool:
        """
        Send the configuration descriptor to the agent.

        Args:
            settings: Descriptor to send; defaults to the one given at construction

        Returns:
            bool: True if the descriptor was sent

        Raises:
            ProtocolStateError: If called outside OPENED/AWAITING_HANDSHAKE or after
                the descriptor was already sent
        """
        if self.configured or self.state not in CONFIGURABLE_STATES:
            raise ProtocolStateError("configure", self.state)
        settings = settings or self.settings
        if settings is None:
            raise ValueError("No configuration descriptor to send")

        # Set before sending so a concurrent caller cannot send a second descriptor
        self.configured = True
        self.settings = settings
        logger.info(f"Sending Settings to Deepgram Voice Agent for session {self.session_id}")
        try:
            await self.ws.send(json.dumps(settings.to_message()))
        except ConnectionClosed as e:
            await self._connection_closed(e)
            return False

        if self.state in CONFIGURABLE_STATES:
            await self._set_state(AgentState.CONFIGURED)
        return True

    async def send(self, frame: bytes) -> bool:
        """
        Forward one raw audio frame upstream, unmodified.

        Frames sent before SettingsApplied follow the early audio policy. Calling
        this after the session has closed is a no-op.

        Returns:
            bool: True if the frame was written to the connection

        Raises:
            ProtocolStateError: If the connection is not open yet
        """
        if self.state.is_terminal:
            logger.debug(f"Dropping audio frame, agent session {self.session_id} is {self.state.value}")
            return False
        if self.state is AgentState.CONNECTING:
            raise ProtocolStateError("send audio", self.state)

        if self.state is not AgentState.ACTIVE:
            if self.early_audio_policy is EarlyAudioPolicy.DROP:
                logger.debug(f"Dropping {len(frame)} byte frame before SettingsApplied")
                return False
            if self.early_audio_policy is EarlyAudioPolicy.BUFFER:
                self._pending.append(frame)
                return False

        return await self._transmit(frame)

    async def _transmit(self, frame: bytes) -> bool:
        try:
            await self.ws.send(frame)
        except ConnectionClosed as e:
            await self._connection_closed(e)
            return False
        self._last_audio = time.monotonic()
        logger.debug(f"Sent {len(frame)} bytes of audio to agent")
        return True

    async def _flush_pending(self) -> None:
        # New frames keep landing in the buffer until the state flips to ACTIVE
        while self._pending and not self.state.is_terminal:
            await self._transmit(self._pending.popleft())

    async def close(self) -> None:
        """Close the session. Safe to call any number of times."""
        if self.state.is_terminal:
            return
        if await self._set_state(AgentState.CLOSED):
            await self._emit(AgentEvent.CLOSE)

    async def _fail(self, reason: Any) -> None:
        if self.state.is_terminal:
            return
        logger.error(f"Agent session {self.session_id} failed: {reason}")
        if await self._set_state(AgentState.ERRORED):
            await self._emit(AgentEvent.ERROR, reason)

    async def _connection_closed(self, exc: ConnectionClosed) -> None:
        if isinstance(exc, ConnectionClosedOK):
            logger.info(f"Agent connection closed normally for session {self.session_id}")
            await self.close()
        else:
            await self._fail(exc)

    async def _teardown(self) -> None:
        current = asyncio.current_task()
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        for task in (self._keepalive_task, self._recv_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._pending.clear()
        if self.ws is not None:
            try:
                await self.ws.close()
            except Exception as e:
                logger.debug(f"Error closing agent connection: {e}")

    async def _recv_loop(self) -> None:
        """Read agent messages until the connection ends."""
        try:
            while not self.state.is_terminal:
                message = await self.ws.recv()
                if isinstance(message, bytes):
                    await self._emit(AgentEvent.AUDIO, message)
                else:
                    await self._handle_text(message)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as e:
            await self._connection_closed(e)
        except Exception as e:
            logger.error(f"Error in agent receive loop: {e}", exc_info=True)
            await self._fail(e)

    async def _handle_text(self, message: str) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning(f"Received invalid JSON from agent: {message[:100]}...")
            return
        if not isinstance(data, dict):
            logger.warning(f"Received non-object message from agent: {message[:100]}")
            return

        try:
            event = parse_agent_message(data)
        except ValidationError as e:
            logger.warning(f"Agent message validation error: {e}")
            return

        if event.type == MESSAGE_TYPE_WELCOME:
            await self._emit(AgentEvent.WELCOME, event)
            if self.handshake_mode is HandshakeMode.ON_WELCOME and not self.configured:
                await self._configure_on_welcome()
        elif event.type == MESSAGE_TYPE_SETTINGS_APPLIED:
            await self._on_settings_applied(event)
        elif event.type == MESSAGE_TYPE_ERROR:
            detail = event.detail if isinstance(event, AgentErrorMessage) else data
            logger.error(f"Error from agent for session {self.session_id}: {detail}")
            await self._emit(AgentEvent.ERROR, event)
        elif event.type in MESSAGE_EVENTS:
            await self._emit(MESSAGE_EVENTS[event.type], event)
        else:
            logger.debug(f"Received agent message of type: {event.type}")
            await self._emit(AgentEvent.UNHANDLED, event)

    async def _configure_on_welcome(self) -> None:
        if self.settings is None:
            logger.info("No descriptor for session, relying on agent defaults")
            return
        try:
            await self.configure()
        except ProtocolStateError as e:
            logger.warning(f"Ignoring Welcome: {e}")

    async def _on_settings_applied(self, event: AgentMessage) -> None:
        if not self.configured:
            await self._fail(f"{MESSAGE_TYPE_SETTINGS_APPLIED} received before Settings was sent")
            return
        if self.state is AgentState.AWAITING_HANDSHAKE:
            await self._set_state(AgentState.CONFIGURED)
        if self.state is not AgentState.CONFIGURED:
            logger.warning(f"Ignoring {MESSAGE_TYPE_SETTINGS_APPLIED} in state {self.state.value}")
            return

        await self._flush_pending()
        if await self._set_state(AgentState.ACTIVE):
            await self._emit(AgentEvent.SETTINGS_APPLIED, event)

    async def _keep_alive(self) -> None:
        """Send KeepAlive while the session is idle so the agent does not time out."""
        keep_alive = json.dumps({"type": MESSAGE_TYPE_KEEP_ALIVE})
        while not self.state.is_terminal:
            await asyncio.sleep(KEEPALIVE_INTERVAL)
            if self.state.is_terminal or not self.configured:
                continue
            if time.monotonic() - self._last_audio < KEEPALIVE_INTERVAL:
                continue
            try:
                await self.ws.send(keep_alive)
                logger.debug(f"Sent KeepAlive for session {self.session_id}")
            except ConnectionClosed as e:
                await self._connection_closed(e)
                break
