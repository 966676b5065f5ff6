"""State, policy and event enumerations for the agent session."""

from enum import Enum


class AgentState(str, Enum):
    """Handshake lifecycle of one upstream agent connection."""

    CONNECTING = "connecting"
    OPENED = "opened"
    AWAITING_HANDSHAKE = "awaiting_handshake"
    CONFIGURED = "configured"
    ACTIVE = "active"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentState.CLOSED, AgentState.ERRORED)


# States in which browser audio may be sent upstream
SENDABLE_STATES = frozenset(
    {
        AgentState.OPENED,
        AgentState.AWAITING_HANDSHAKE,
        AgentState.CONFIGURED,
        AgentState.ACTIVE,
    }
)

# States in which the configuration descriptor may be sent
CONFIGURABLE_STATES = frozenset({AgentState.OPENED, AgentState.AWAITING_HANDSHAKE})


class HandshakeMode(str, Enum):
    """When the configuration descriptor is sent."""

    ON_OPEN = "open"  # as soon as the transport is open
    ON_WELCOME = "welcome"  # after the peer's Welcome message


class EarlyAudioPolicy(str, Enum):
    """What happens to browser audio that arrives before SettingsApplied."""

    FORWARD = "forward"
    BUFFER = "buffer"
    DROP = "drop"


class AgentEvent(str, Enum):
    """Events an agent session publishes to its registered handlers."""

    OPEN = "Open"
    WELCOME = "Welcome"
    SETTINGS_APPLIED = "SettingsApplied"
    USER_STARTED_SPEAKING = "UserStartedSpeaking"
    AGENT_THINKING = "AgentThinking"
    AGENT_STARTED_SPEAKING = "AgentStartedSpeaking"
    AGENT_AUDIO_DONE = "AgentAudioDone"
    CONVERSATION_TEXT = "ConversationText"
    AUDIO = "Audio"
    ERROR = "Error"
    WARNING = "Warning"
    CLOSE = "Close"
    STATE_CHANGED = "StateChanged"
    UNHANDLED = "Unhandled"
