"""
Command-line entry point for the agent relay.

Loads the environment, fails fast when the Deepgram credential is missing, then
serves the relay until SIGINT/SIGTERM and exits with the shutdown outcome.

Usage:
    agent-relay [--port PORT] [--host HOST] [--log-level LEVEL]
    python -m agent_relay.run
"""

import argparse
import asyncio
import sys

from agent_relay.config.constants import EXIT_FAILURE
from agent_relay.config.logging_config import configure_logging
from agent_relay.config.settings import load_settings
from agent_relay.errors import ConfigurationError
from agent_relay.main import create_app
from agent_relay.server import RelayServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Relay browser audio to the Deepgram Voice Agent"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: PORT env var or 3000)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the server to (default: HOST env var or 0.0.0.0)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point: validate configuration, serve, and exit with the shutdown code."""
    args = parse_args(argv)

    try:
        settings = load_settings(host=args.host, port=args.port, log_level=args.log_level)
    except ConfigurationError as e:
        logger = configure_logging(args.log_level)
        logger.error(str(e))
        sys.exit(EXIT_FAILURE)

    logger = configure_logging(settings.log_level)
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Handshake mode: {settings.handshake_mode.value}, early audio: {settings.early_audio_policy.value}")

    app = create_app(settings)
    server = RelayServer(
        app,
        app.state.coordinator,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
    sys.exit(asyncio.run(server.serve()))


if __name__ == "__main__":
    main()
