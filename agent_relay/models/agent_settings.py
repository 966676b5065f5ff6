"""
Pydantic models for the Deepgram Voice Agent configuration descriptor.

The descriptor is sent exactly once per agent session as the `Settings`
message. Every model here is frozen: once built, a descriptor cannot be
mutated, and a new session needs a new descriptor.
"""

from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agent_relay.config.constants import (
    AUDIO_CONTAINER_NONE,
    AUDIO_ENCODING_LINEAR16,
    DEFAULT_GREETING,
    DEFAULT_INPUT_SAMPLE_RATE,
    DEFAULT_LISTEN_MODEL,
    DEFAULT_LISTEN_PROVIDER,
    DEFAULT_OUTPUT_SAMPLE_RATE,
    DEFAULT_SPEAK_MODEL,
    DEFAULT_SPEAK_PROVIDER,
    DEFAULT_THINK_MODEL,
    DEFAULT_THINK_PROVIDER,
    MESSAGE_TYPE_SETTINGS,
)

DEFAULT_INSTRUCTIONS = """You are a helpful voice assistant created by Deepgram. Your responses should be friendly, human-like, and conversational. Always keep your answers concise, limited to 1-2 sentences and no more than 120 characters.

When responding to a user's message, follow these guidelines:
- If the user's message is empty, respond with an empty message.
- Ask follow-up questions to engage the user, but only one question at a time.
- Keep your responses unique and avoid repetition.
- If a question is unclear or ambiguous, ask for clarification before answering.
- If asked about your well-being, provide a brief response about how you're feeling.

Remember that you have a voice interface. You can listen and speak, and all your responses will be spoken aloud."""


class FrozenModel(BaseModel):
    """Base for immutable descriptor parts."""

    model_config = ConfigDict(frozen=True)


class AudioInput(FrozenModel):
    """Format of the audio the relay sends upstream."""

    encoding: str = AUDIO_ENCODING_LINEAR16
    sample_rate: int = Field(DEFAULT_INPUT_SAMPLE_RATE, gt=0)


class AudioOutput(FrozenModel):
    """Format of the audio the agent sends back."""

    encoding: str = AUDIO_ENCODING_LINEAR16
    sample_rate: int = Field(DEFAULT_OUTPUT_SAMPLE_RATE, gt=0)
    container: str = AUDIO_CONTAINER_NONE


class AudioConfig(FrozenModel):
    input: AudioInput = AudioInput()
    output: AudioOutput = AudioOutput()


class Provider(FrozenModel):
    """A provider/model selection for one agent stage."""

    type: str
    model: str


class ListenConfig(FrozenModel):
    provider: Provider = Provider(type=DEFAULT_LISTEN_PROVIDER, model=DEFAULT_LISTEN_MODEL)


class ThinkConfig(FrozenModel):
    provider: Provider = Provider(type=DEFAULT_THINK_PROVIDER, model=DEFAULT_THINK_MODEL)
    prompt: str = DEFAULT_INSTRUCTIONS

    @field_validator("prompt")
    def validate_prompt(cls, v):
        """Validate that the instruction text is not empty."""
        if not v.strip():
            raise ValueError("Agent instructions cannot be empty")
        return v


class SpeakConfig(FrozenModel):
    provider: Provider = Provider(type=DEFAULT_SPEAK_PROVIDER, model=DEFAULT_SPEAK_MODEL)


class ContextMessage(FrozenModel):
    """A seed conversation turn replayed to the agent at handshake time."""

    role: Literal["user", "assistant"]
    content: str


class AgentSettings(FrozenModel):
    """
    Configuration descriptor sent to the agent during the handshake.

    Holds the audio formats in both directions, the listen/think/speak model
    selection, the instruction prompt and an optional greeting or seed
    conversation.
    """

    audio: AudioConfig = AudioConfig()
    listen: ListenConfig = ListenConfig()
    think: ThinkConfig = ThinkConfig()
    speak: SpeakConfig = SpeakConfig()
    language: Optional[str] = None
    greeting: Optional[str] = DEFAULT_GREETING
    context: Tuple[ContextMessage, ...] = ()

    def to_message(self) -> Dict[str, Any]:
        """
        Build the `Settings` wire message.

        Returns:
            dict: JSON-serializable Settings payload
        """
        agent: Dict[str, Any] = {
            "listen": self.listen.model_dump(),
            "think": self.think.model_dump(),
            "speak": self.speak.model_dump(),
        }
        if self.language:
            agent["language"] = self.language
        if self.greeting:
            agent["greeting"] = self.greeting
        if self.context:
            agent["context"] = {
                "messages": [
                    {"type": "History", "role": m.role, "content": m.content}
                    for m in self.context
                ]
            }
        return {
            "type": MESSAGE_TYPE_SETTINGS,
            "audio": self.audio.model_dump(),
            "agent": agent,
        }


def default_agent_settings(input_sample_rate: int = DEFAULT_INPUT_SAMPLE_RATE) -> AgentSettings:
    """Return the stock descriptor for a browser at the given microphone sample rate."""
    return AgentSettings(
        audio=AudioConfig(input=AudioInput(sample_rate=input_sample_rate))
    )
