"""
Agent module for the upstream Deepgram Voice Agent connection.

Key components:
- AgentSession: owns one WebSocket connection to the agent service, drives the
  Settings handshake state machine and publishes agent events (audio, transcripts,
  speech notifications, errors, close) to registered handlers.
- states: the AgentState lifecycle plus the HandshakeMode, EarlyAudioPolicy and
  AgentEvent enumerations.

Usage examples:
```python
from agent_relay.agent import AgentEvent, AgentSession
from agent_relay.models.agent_settings import default_agent_settings

async def talk(api_key, audio_frames):
    agent = AgentSession(api_key, settings=default_agent_settings())

    async def on_audio(frame):
        play(frame)

    agent.on(AgentEvent.AUDIO, on_audio)
    await agent.open()  # sends Settings as soon as the connection opens

    for frame in audio_frames:
        await agent.send(frame)

    await agent.close()
```
"""

from agent_relay.agent.agent_session import AgentSession
from agent_relay.agent.states import AgentEvent, AgentState, EarlyAudioPolicy, HandshakeMode

__all__ = ["AgentSession", "AgentEvent", "AgentState", "EarlyAudioPolicy", "HandshakeMode"]
