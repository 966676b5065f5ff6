"""
Agent Relay - Browser Audio to Deepgram Voice Agent Bridge

This application relays real-time audio between a browser client and the Deepgram
Voice Agent service. A browser opens a WebSocket to the relay and streams raw
linear16 microphone audio; the relay opens its own WebSocket to the agent, drives
the Settings handshake, and forwards audio in both directions.

Architecture Overview:
- FastAPI server serving the browser page and the browser audio WebSocket
- One Deepgram Voice Agent connection per browser connection
- Bidirectional binary audio forwarding with per-direction ordering
- Coupled lifecycles: closing either side closes the other
- Signal-driven shutdown bounded by a fixed timeout

Key Components:
- agent: AgentSession, the upstream connection and its handshake state machine
- browser_session: BrowserSession, the client-facing side of a session pair
- coordinator: SessionCoordinator, pairing and shutdown coupling per connection
- config: constants, logging setup and environment-based settings
- models: the configuration descriptor, agent message models and the session registry
- server: RelayServer, uvicorn lifecycle and shutdown sequencing

Getting Started:
1. Set up environment variables (or a .env file):
   - DEEPGRAM_API_KEY: Your Deepgram API key (required)
   - PORT: Port to run the server on (default 3000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   agent-relay
   ```

3. Open http://localhost:3000 in a browser and start talking.
"""
