"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol names, defaults and timeouts so the
relay, the agent session and the server agree on them.
"""

# Logger name used throughout the application
LOGGER_NAME = "agent_relay"

# Deepgram Voice Agent endpoint
DEFAULT_AGENT_URL = "wss://agent.deepgram.com/v1/agent/converse"

# Server defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

# Audio format constants
AUDIO_ENCODING_LINEAR16 = "linear16"
AUDIO_CONTAINER_NONE = "none"
DEFAULT_INPUT_SAMPLE_RATE = 48000
DEFAULT_OUTPUT_SAMPLE_RATE = 24000

# Default agent models
DEFAULT_LISTEN_PROVIDER = "deepgram"
DEFAULT_LISTEN_MODEL = "nova-3"
DEFAULT_THINK_PROVIDER = "open_ai"
DEFAULT_THINK_MODEL = "gpt-4o-mini"
DEFAULT_SPEAK_PROVIDER = "deepgram"
DEFAULT_SPEAK_MODEL = "aura-asteria-en"
DEFAULT_GREETING = "Hello, how can I help you?"

# Agent message type constants
MESSAGE_TYPE_SETTINGS = "Settings"
MESSAGE_TYPE_KEEP_ALIVE = "KeepAlive"
MESSAGE_TYPE_WELCOME = "Welcome"
MESSAGE_TYPE_SETTINGS_APPLIED = "SettingsApplied"
MESSAGE_TYPE_CONVERSATION_TEXT = "ConversationText"
MESSAGE_TYPE_USER_STARTED_SPEAKING = "UserStartedSpeaking"
MESSAGE_TYPE_AGENT_THINKING = "AgentThinking"
MESSAGE_TYPE_AGENT_STARTED_SPEAKING = "AgentStartedSpeaking"
MESSAGE_TYPE_AGENT_AUDIO_DONE = "AgentAudioDone"
MESSAGE_TYPE_ERROR = "Error"
MESSAGE_TYPE_WARNING = "Warning"

# Agent connection tuning
CONNECTION_TIMEOUT = 10  # seconds
KEEPALIVE_INTERVAL = 8  # seconds without audio before a KeepAlive is sent
MAX_PENDING_FRAMES = 256  # early-audio buffer bound
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_PING_INTERVAL = 5

# Browser close codes
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011
CLOSE_SERVICE_RESTART = 1012

# Shutdown
SHUTDOWN_TIMEOUT = 5.0  # seconds
EXIT_OK = 0
EXIT_FAILURE = 1
