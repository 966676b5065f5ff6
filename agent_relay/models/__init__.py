"""
Models module for data structures and state management in the agent relay.

Key components:
- agent_settings: Frozen pydantic models for the configuration descriptor sent to
  the Deepgram Voice Agent at handshake time.
- agent_messages: Pydantic models for the structured events the agent sends
  (Welcome, SettingsApplied, ConversationText, Error, ...).
- session_registry: The registry of active browser/agent session pairs, keyed by
  browser connection id.

Usage examples:
```python
from agent_relay.models import AgentSettings, ContextMessage, parse_agent_message

settings = AgentSettings(
    greeting=None,
    context=(ContextMessage(role="assistant", content="Hello, how can I help you?"),),
)
payload = settings.to_message()

message = parse_agent_message({"type": "ConversationText", "role": "user", "content": "hi"})
```
"""

from agent_relay.models.agent_messages import (
    AgentErrorMessage,
    AgentMessage,
    AgentStartedSpeakingMessage,
    ConversationTextMessage,
    SettingsAppliedMessage,
    WelcomeMessage,
    parse_agent_message,
)
from agent_relay.models.agent_settings import (
    AgentSettings,
    AudioConfig,
    AudioInput,
    AudioOutput,
    ContextMessage,
    Provider,
    default_agent_settings,
)
from agent_relay.models.session_registry import SessionPair, SessionRegistry
