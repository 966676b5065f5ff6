"""Exception types raised by the relay."""


class RelayError(Exception):
    """Base class for relay errors."""


class ConfigurationError(RelayError):
    """Startup configuration is missing or invalid."""


class ProtocolStateError(RelayError):
    """An agent session operation was called outside the states that allow it."""

    def __init__(self, operation: str, state):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while agent session is {state.value}")


class AgentConnectionError(RelayError):
    """The upstream agent connection could not be established."""
