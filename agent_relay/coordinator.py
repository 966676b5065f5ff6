"""
Session coordinator pairing browser connections with agent sessions.

For every browser WebSocket the coordinator creates exactly one AgentSession,
registers the pair, and wires forwarding in both directions. It also enforces
the shutdown coupling between the two sides: when either side closes, the
other is closed in the same teardown cycle, and the browser never waits for
the agent to finish closing.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional, Set

from fastapi import WebSocket

from agent_relay.agent.agent_session import AgentSession
from agent_relay.agent.states import AgentEvent, AgentState
from agent_relay.browser_session import BrowserSession
from agent_relay.config.constants import (
    CLOSE_GOING_AWAY,
    CLOSE_INTERNAL_ERROR,
    CLOSE_SERVICE_RESTART,
    LOGGER_NAME,
)
from agent_relay.config.settings import RelaySettings
from agent_relay.errors import AgentConnectionError
from agent_relay.models.agent_messages import (
    AgentStartedSpeakingMessage,
    ConversationTextMessage,
)
from agent_relay.models.session_registry import SessionPair, SessionRegistry

logger = logging.getLogger(LOGGER_NAME)

AgentFactory = Callable[[str], AgentSession]


class SessionCoordinator:
    """
    Creates and couples session pairs for incoming browser connections.

    The coordinator owns the registry of open pairs, which the server uses to
    fan out shutdown to every connected browser.
    """

    def __init__(self, settings: RelaySettings, agent_factory: Optional[AgentFactory] = None):
        self.settings = settings
        self.registry = SessionRegistry()
        self.accepting = True
        self._agent_factory = agent_factory or self._default_agent_factory
        self._tasks: Set[asyncio.Task] = set()

    def _default_agent_factory(self, connection_id: str) -> AgentSession:
        return AgentSession(
            self.settings.api_key,
            settings=self.settings.agent_settings(),
            url=self.settings.agent_url,
            handshake_mode=self.settings.handshake_mode,
            early_audio_policy=self.settings.early_audio_policy,
            session_id=connection_id,
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        """Run a coroutine without waiting on it, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle_browser(self, websocket: WebSocket) -> None:
        """
        Run one browser connection from accept to teardown.

        Args:
            websocket: The FastAPI WebSocket connection from the browser
        """
        if not self.accepting:
            logger.info("Refusing browser connection, relay is shutting down")
            await websocket.close(code=CLOSE_SERVICE_RESTART)
            return

        await websocket.accept()
        browser = BrowserSession(websocket)
        agent = self._agent_factory(browser.connection_id)
        pair = SessionPair(browser=browser, agent=agent)
        self.registry.add(pair)
        self._wire(pair)
        logger.info(
            f"Browser client connected: {browser.connection_id} "
            f"({len(self.registry)} active)"
        )

        try:
            if await agent.open() is None:
                return
            await browser.run()
        except AgentConnectionError as e:
            logger.error(f"Error connecting to Deepgram for {browser.connection_id}: {e}")
        except Exception as e:
            logger.error(f"Error in browser connection {browser.connection_id}: {e}", exc_info=True)
        finally:
            await browser.close(
                code=CLOSE_INTERNAL_ERROR if agent.state is AgentState.ERRORED else CLOSE_GOING_AWAY
            )
            self.registry.remove(browser.connection_id)
            logger.info(
                f"Browser client removed: {browser.connection_id} ({len(self.registry)} active)"
            )

    def _wire(self, pair: SessionPair) -> None:
        browser, agent = pair.browser, pair.agent
        browser.attach_agent(agent)
        connection_id = pair.connection_id

        async def on_audio(frame: bytes) -> None:
            await browser.forward_to_browser(frame)

        async def on_state_changed(change) -> None:
            _, new_state = change
            if new_state is AgentState.ERRORED:
                await browser.close(code=CLOSE_INTERNAL_ERROR, reason="agent error")

        async def on_agent_close(_) -> None:
            logger.info(f"Agent connection closed for {connection_id}")
            await browser.close()

        async def on_browser_close(_) -> None:
            # fire-and-forget: the browser side does not wait for the agent to finish
            self._spawn(agent.close())

        async def on_open(_) -> None:
            logger.info(f"Agent connection opened for {connection_id}")

        async def on_settings_applied(_) -> None:
            logger.info(f"Agent settings applied for {connection_id}")

        async def on_agent_started_speaking(message: AgentStartedSpeakingMessage) -> None:
            logger.info(f"Agent started speaking: {message.total_latency}")

        async def on_user_started_speaking(_) -> None:
            logger.info(f"User started speaking on {connection_id}")

        async def on_conversation_text(message: ConversationTextMessage) -> None:
            logger.info(f"{message.role} said: {message.content}")

        async def on_warning(message) -> None:
            logger.warning(f"Agent warning for {connection_id}: {message}")

        agent.on(AgentEvent.AUDIO, on_audio)
        agent.on(AgentEvent.STATE_CHANGED, on_state_changed)
        agent.on(AgentEvent.CLOSE, on_agent_close)
        agent.on(AgentEvent.OPEN, on_open)
        agent.on(AgentEvent.SETTINGS_APPLIED, on_settings_applied)
        agent.on(AgentEvent.AGENT_STARTED_SPEAKING, on_agent_started_speaking)
        agent.on(AgentEvent.USER_STARTED_SPEAKING, on_user_started_speaking)
        agent.on(AgentEvent.CONVERSATION_TEXT, on_conversation_text)
        agent.on(AgentEvent.WARNING, on_warning)
        browser.on_close(on_browser_close)

    def stop_accepting(self) -> None:
        """Refuse new browser connections from now on."""
        self.accepting = False

    def close_all(self) -> int:
        """
        Start closing every open browser connection.

        Returns:
            int: Number of connections being closed
        """
        pairs = self.registry.all()
        for pair in pairs:
            self._spawn(pair.browser.close(code=CLOSE_GOING_AWAY, reason="server shutdown"))
        return len(pairs)

    async def wait_closed(self) -> None:
        """Wait until every session pair has been torn down."""
        await self.registry.wait_empty()
