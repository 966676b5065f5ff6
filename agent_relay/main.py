"""
FastAPI application for the browser-to-agent audio relay.

This module builds the FastAPI application that serves the browser client page
and accepts the browser's audio WebSocket. Each WebSocket connection is handed
to the SessionCoordinator, which pairs it with its own Deepgram Voice Agent
session for the lifetime of the connection.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.responses import HTMLResponse

from agent_relay.config.constants import LOGGER_NAME
from agent_relay.config.settings import RelaySettings
from agent_relay.coordinator import SessionCoordinator

logger = logging.getLogger(LOGGER_NAME)

STATIC_DIR = Path(__file__).parent / "static"
INDEX_FILE = STATIC_DIR / "index.html"


def create_app(settings: RelaySettings, coordinator: Optional[SessionCoordinator] = None) -> FastAPI:
    """
    Create the relay application.

    Args:
        settings: Validated relay settings
        coordinator: Optional pre-built coordinator (tests inject one with a fake agent factory)

    Returns:
        FastAPI: The configured application, with the coordinator on app.state
    """
    app = FastAPI(
        title="Agent Relay",
        description="Real-time audio relay between a browser client and the Deepgram Voice Agent",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.coordinator = coordinator or SessionCoordinator(settings)

    @app.get("/", response_class=HTMLResponse)
    async def index():
        """Serve the browser client page."""
        try:
            content = INDEX_FILE.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error loading index.html: {e}")
            return HTMLResponse("Error loading index.html", status_code=500)
        return HTMLResponse(content)

    @app.websocket("/")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Audio WebSocket for browser clients.

        Binary frames are raw linear16 PCM from the microphone; binary frames sent
        back are the agent's linear16 speech.
        """
        await app.state.coordinator.handle_browser(websocket)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring system status.

        Returns:
            dict: Status information including the number of active sessions.
        """
        coordinator = app.state.coordinator
        return {
            "status": "healthy" if coordinator.accepting else "shutting_down",
            "deepgram_api_key_configured": bool(settings.api_key),
            "active_connections": len(coordinator.registry),
            "accepting_connections": coordinator.accepting,
        }

    return app
