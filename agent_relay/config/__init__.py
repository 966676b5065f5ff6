"""
Configuration module for the agent relay.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants used across modules, including agent
  message types, audio formats, default models, close codes and exit codes.
- logging_config: A consistent logging infrastructure with console and
  rotating file output.
- settings: The RelaySettings model and load_settings(), which reads the
  process environment and fails fast when the Deepgram credential is missing.

Usage examples:
```python
from agent_relay.config.constants import LOGGER_NAME, SHUTDOWN_TIMEOUT
from agent_relay.config.logging_config import configure_logging
from agent_relay.config.settings import load_settings

logger = configure_logging()
settings = load_settings()
logger.info(f"Relay will listen on {settings.host}:{settings.port}")
```
"""
