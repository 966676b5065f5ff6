"""
Pydantic models for the structured events sent by the Deepgram Voice Agent.

Text frames from the agent are JSON objects discriminated by their "type"
field. parse_agent_message() maps a decoded frame to the matching model and
falls back to a generic AgentMessage for types the relay does not act on.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from agent_relay.config.constants import (
    MESSAGE_TYPE_AGENT_AUDIO_DONE,
    MESSAGE_TYPE_AGENT_STARTED_SPEAKING,
    MESSAGE_TYPE_AGENT_THINKING,
    MESSAGE_TYPE_CONVERSATION_TEXT,
    MESSAGE_TYPE_ERROR,
    MESSAGE_TYPE_SETTINGS_APPLIED,
    MESSAGE_TYPE_USER_STARTED_SPEAKING,
    MESSAGE_TYPE_WARNING,
    MESSAGE_TYPE_WELCOME,
)


class AgentMessage(BaseModel):
    """Base model for all agent text messages."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Message type identifier")


class WelcomeMessage(AgentMessage):
    """Sent by the agent once the connection is ready for Settings."""

    request_id: Optional[str] = None


class SettingsAppliedMessage(AgentMessage):
    """Acknowledges that the Settings message was applied."""


class ConversationTextMessage(AgentMessage):
    """A transcript line from either side of the conversation."""

    role: str
    content: str


class UserStartedSpeakingMessage(AgentMessage):
    """Voice activity detected on the user side."""


class AgentThinkingMessage(AgentMessage):
    content: Optional[str] = None


class AgentStartedSpeakingMessage(AgentMessage):
    """The agent began producing audio; latencies are in seconds."""

    total_latency: Optional[float] = None
    tts_latency: Optional[float] = None
    ttt_latency: Optional[float] = None


class AgentAudioDoneMessage(AgentMessage):
    """The agent finished sending audio for the current turn."""


class AgentErrorMessage(AgentMessage):
    """An error reported by the agent service."""

    description: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None

    @property
    def detail(self) -> str:
        return self.description or self.message or "unknown error"


class AgentWarningMessage(AgentMessage):
    description: Optional[str] = None
    code: Optional[str] = None


MESSAGE_MODELS: Dict[str, Type[AgentMessage]] = {
    MESSAGE_TYPE_WELCOME: WelcomeMessage,
    MESSAGE_TYPE_SETTINGS_APPLIED: SettingsAppliedMessage,
    MESSAGE_TYPE_CONVERSATION_TEXT: ConversationTextMessage,
    MESSAGE_TYPE_USER_STARTED_SPEAKING: UserStartedSpeakingMessage,
    MESSAGE_TYPE_AGENT_THINKING: AgentThinkingMessage,
    MESSAGE_TYPE_AGENT_STARTED_SPEAKING: AgentStartedSpeakingMessage,
    MESSAGE_TYPE_AGENT_AUDIO_DONE: AgentAudioDoneMessage,
    MESSAGE_TYPE_ERROR: AgentErrorMessage,
    MESSAGE_TYPE_WARNING: AgentWarningMessage,
}


def parse_agent_message(data: Dict[str, Any]) -> AgentMessage:
    """
    Parse a decoded agent message into its typed model.

    Args:
        data: The decoded JSON object

    Returns:
        AgentMessage: The typed message, or a generic AgentMessage for unknown types

    Raises:
        pydantic.ValidationError: If the message does not match its model
    """
    model = MESSAGE_MODELS.get(data.get("type"), AgentMessage)
    return model(**data)
