import pytest

from agent_relay.agent.states import EarlyAudioPolicy, HandshakeMode
from agent_relay.config.constants import DEFAULT_AGENT_URL, DEFAULT_PORT
from agent_relay.config.settings import RelaySettings, load_settings
from agent_relay.errors import ConfigurationError


def test_load_settings_defaults():
    """Test that only the credential is required"""
    settings = load_settings({"DEEPGRAM_API_KEY": "abc"})

    assert settings.api_key == "abc"
    assert settings.port == DEFAULT_PORT
    assert settings.agent_url == DEFAULT_AGENT_URL
    assert settings.handshake_mode is HandshakeMode.ON_OPEN
    assert settings.early_audio_policy is EarlyAudioPolicy.FORWARD


def test_load_settings_missing_api_key():
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings({})
    assert "DEEPGRAM_API_KEY" in str(exc_info.value)


def test_load_settings_empty_api_key():
    with pytest.raises(ConfigurationError):
        load_settings({"DEEPGRAM_API_KEY": ""})


def test_load_settings_from_environment_values():
    env = {
        "DEEPGRAM_API_KEY": "abc",
        "PORT": "8080",
        "LOG_LEVEL": "debug",
        "AGENT_HANDSHAKE": "welcome",
        "AGENT_EARLY_AUDIO": "buffer",
        "AGENT_INPUT_SAMPLE_RATE": "16000",
    }
    settings = load_settings(env)

    assert settings.port == 8080
    assert settings.log_level == "DEBUG"
    assert settings.handshake_mode is HandshakeMode.ON_WELCOME
    assert settings.early_audio_policy is EarlyAudioPolicy.BUFFER
    assert settings.agent_settings().audio.input.sample_rate == 16000


@pytest.mark.parametrize(
    "key,value",
    [
        ("PORT", "not-a-port"),
        ("PORT", "70000"),
        ("LOG_LEVEL", "LOUD"),
        ("AGENT_HANDSHAKE", "eventually"),
        ("AGENT_EARLY_AUDIO", "keep"),
    ],
)
def test_load_settings_invalid_values(key, value):
    """Test that invalid values are reported as configuration errors"""
    with pytest.raises(ConfigurationError):
        load_settings({"DEEPGRAM_API_KEY": "abc", key: value})


def test_overrides_take_precedence_and_none_is_ignored():
    settings = load_settings(
        {"DEEPGRAM_API_KEY": "abc", "PORT": "8080", "HOST": "10.0.0.1"},
        port=9000,
        host=None,
    )

    assert settings.port == 9000
    assert settings.host == "10.0.0.1"


def test_api_key_not_in_repr():
    settings = RelaySettings(api_key="secret-key")
    assert "secret-key" not in repr(settings)
