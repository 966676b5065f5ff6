import json

import pytest
from pydantic import ValidationError

from agent_relay.models.agent_settings import (
    AgentSettings,
    ContextMessage,
    ThinkConfig,
    default_agent_settings,
)


def test_default_settings_message():
    """Test the Settings message built from the default descriptor"""
    message = default_agent_settings().to_message()

    assert message["type"] == "Settings"
    assert message["audio"]["input"] == {"encoding": "linear16", "sample_rate": 48000}
    assert message["audio"]["output"] == {"encoding": "linear16", "sample_rate": 24000, "container": "none"}
    assert message["agent"]["listen"]["provider"] == {"type": "deepgram", "model": "nova-3"}
    assert message["agent"]["think"]["provider"]["model"] == "gpt-4o-mini"
    assert message["agent"]["think"]["prompt"]
    assert message["agent"]["speak"]["provider"]["model"] == "aura-asteria-en"
    assert "greeting" in message["agent"]
    assert "context" not in message["agent"]
    json.dumps(message)


def test_input_sample_rate():
    assert default_agent_settings(16000).to_message()["audio"]["input"]["sample_rate"] == 16000


def test_settings_are_immutable():
    settings = default_agent_settings()

    with pytest.raises(ValidationError):
        settings.greeting = "changed"
    with pytest.raises(ValidationError):
        settings.audio.input.sample_rate = 8000


def test_context_and_language():
    settings = AgentSettings(
        language="en",
        greeting=None,
        context=(
            ContextMessage(role="user", content="Hi"),
            ContextMessage(role="assistant", content="Hello there"),
        ),
    )
    agent = settings.to_message()["agent"]

    assert agent["language"] == "en"
    assert "greeting" not in agent
    assert agent["context"]["messages"] == [
        {"type": "History", "role": "user", "content": "Hi"},
        {"type": "History", "role": "assistant", "content": "Hello there"},
    ]


def test_empty_prompt_rejected():
    with pytest.raises(ValidationError):
        ThinkConfig(prompt="   ")


def test_invalid_context_role_rejected():
    with pytest.raises(ValidationError):
        ContextMessage(role="system", content="nope")
