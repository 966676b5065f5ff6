"""
Registry of active session pairs.

This module provides the SessionRegistry class, which tracks every open
browser connection and the agent session paired with it, keyed by the
browser's connection id. Each entry has its own lifecycle, so concurrent
browser clients never share audio routing.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from agent_relay.agent.agent_session import AgentSession
    from agent_relay.browser_session import BrowserSession


@dataclass
class SessionPair:
    """The 1:1 binding of a browser session to its agent session."""

    browser: "BrowserSession"
    agent: "AgentSession"
    created_at: float = field(default_factory=time.time)

    @property
    def connection_id(self) -> str:
        return self.browser.connection_id


class SessionRegistry:
    """
    Maps browser connection ids to their session pairs.

    The registry is only touched from the event loop thread, so it needs no lock.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self.active_pairs: Dict[str, SessionPair] = {}
        # created on first wait so it binds to the loop that serves connections
        self._empty: Optional[asyncio.Event] = None

    def add(self, pair: SessionPair) -> None:
        """
        Register a new session pair.

        Raises:
            ValueError: If the connection id already has a pair
        """
        if pair.connection_id in self.active_pairs:
            raise ValueError(f"Connection {pair.connection_id} is already paired")
        self.active_pairs[pair.connection_id] = pair
        if self._empty is not None:
            self._empty.clear()

    def get(self, connection_id: str) -> Optional[SessionPair]:
        """Return the pair for a connection id, or None."""
        return self.active_pairs.get(connection_id)

    def remove(self, connection_id: str) -> Optional[SessionPair]:
        """Remove and return the pair for a connection id, if present."""
        pair = self.active_pairs.pop(connection_id, None)
        if not self.active_pairs and self._empty is not None:
            self._empty.set()
        return pair

    def all(self) -> List[SessionPair]:
        """Snapshot of every registered pair."""
        return list(self.active_pairs.values())

    def __len__(self) -> int:
        return len(self.active_pairs)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self.active_pairs

    async def wait_empty(self) -> None:
        """Wait until no pairs remain."""
        if not self.active_pairs:
            return
        if self._empty is None:
            self._empty = asyncio.Event()
        await self._empty.wait()
