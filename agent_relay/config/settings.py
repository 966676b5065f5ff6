"""
Environment-based settings for the relay.

Settings are read once at startup from the process environment (and a `.env`
file when one exists). A missing Deepgram credential is a fatal startup
condition and is reported as a ConfigurationError before any socket is opened.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agent_relay.agent.states import EarlyAudioPolicy, HandshakeMode
from agent_relay.config.constants import (
    DEFAULT_AGENT_URL,
    DEFAULT_HOST,
    DEFAULT_INPUT_SAMPLE_RATE,
    DEFAULT_PORT,
)
from agent_relay.errors import ConfigurationError
from agent_relay.models.agent_settings import AgentSettings, default_agent_settings

API_KEY_ENV = "DEEPGRAM_API_KEY"


class RelaySettings(BaseModel):
    """Process-wide settings for the relay server."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1, repr=False)
    host: str = DEFAULT_HOST
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)
    log_level: str = "INFO"
    agent_url: str = DEFAULT_AGENT_URL
    handshake_mode: HandshakeMode = HandshakeMode.ON_OPEN
    early_audio_policy: EarlyAudioPolicy = EarlyAudioPolicy.FORWARD
    input_sample_rate: int = Field(DEFAULT_INPUT_SAMPLE_RATE, gt=0)

    @field_validator("log_level")
    def validate_log_level(cls, v):
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    def agent_settings(self) -> AgentSettings:
        """Build the configuration descriptor sent to each new agent session."""
        return default_agent_settings(input_sample_rate=self.input_sample_rate)


def load_settings(env: Optional[Mapping[str, str]] = None, **overrides) -> RelaySettings:
    """
    Load relay settings from the environment.

    Args:
        env: Mapping to read from instead of os.environ (the .env file is only
            loaded when reading the real environment)
        **overrides: Values that take precedence over the environment, e.g. CLI flags

    Returns:
        RelaySettings: The validated settings

    Raises:
        ConfigurationError: If the credential is missing or a value is invalid
    """
    if env is None:
        env_path = Path(".") / ".env"
        if env_path.exists():
            dotenv.load_dotenv(env_path)
        env = os.environ

    api_key = env.get(API_KEY_ENV)
    if not api_key:
        raise ConfigurationError(f"Please set your {API_KEY_ENV} in the .env file")

    values = {
        "api_key": api_key,
        "host": env.get("HOST", DEFAULT_HOST),
        "port": env.get("PORT", DEFAULT_PORT),
        "log_level": env.get("LOG_LEVEL", "INFO"),
        "agent_url": env.get("DEEPGRAM_AGENT_URL", DEFAULT_AGENT_URL),
        "handshake_mode": env.get("AGENT_HANDSHAKE", HandshakeMode.ON_OPEN.value),
        "early_audio_policy": env.get("AGENT_EARLY_AUDIO", EarlyAudioPolicy.FORWARD.value),
        "input_sample_rate": env.get("AGENT_INPUT_SAMPLE_RATE", DEFAULT_INPUT_SAMPLE_RATE),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return RelaySettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid relay configuration: {e}") from e
