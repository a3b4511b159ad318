"""Data schemas exchanged with the proxy and the transcription provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional


ENVIRONMENT_PROVIDED = "ENVIRONMENT_PROVIDED"


@dataclass(slots=True, frozen=True)
class Message:
    """Conversation message."""

    role: Literal["user", "assistant"]
    content: str
    is_thinking: bool = False

    def to_payload(self) -> dict[str, str]:
        """Serialize the message for the chat endpoint."""
        return {"role": self.role, "content": self.content}


@dataclass(slots=True, frozen=True)
class VoiceModel:
    """Synthesis voice advertised by the proxy."""

    id: str
    name: str
    language: Optional[str] = None
    model: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "VoiceModel":
        """Construct a VoiceModel from the /api/voices payload."""
        voice_id = str(payload.get("id") or "")
        return cls(
            id=voice_id,
            name=str(payload.get("name") or voice_id),
            language=payload.get("language"),
            model=payload.get("model"),
        )


@dataclass(slots=True)
class Credentials:
    """API keys used by the client (literal values or the environment sentinel)."""

    deepgram_api_key: str = ""
    claude_api_key: str = ""

    @property
    def complete(self) -> bool:
        """Return True when both keys are available."""
        return bool(self.deepgram_api_key) and bool(self.claude_api_key)


@dataclass(slots=True)
class TranscriptEvent:
    """Transcription event produced while streaming voice."""

    text: str
    final: bool = False
    confidence: Optional[float] = None


@dataclass(slots=True, frozen=True)
class AudioPayload:
    """Encoded audio returned by the synthesis endpoint."""

    data: bytes
    format: str = "audio/wav"


@dataclass(slots=True, frozen=True)
class AudioClip:
    """Decoded PCM audio ready for playback."""

    pcm: bytes
    sample_rate: int
    channels: int = 1
    sample_width: int = 2

    @property
    def duration(self) -> Optional[float]:
        """Length in seconds, or None when it cannot be computed."""
        frame_bytes = self.channels * self.sample_width
        if self.sample_rate <= 0 or frame_bytes <= 0 or not self.pcm:
            return None
        return len(self.pcm) / (self.sample_rate * frame_bytes)


class PlaybackResult(str, Enum):
    """How a speak() call settled."""

    FINISHED = "finished"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"
    REJECTED = "rejected"


@dataclass(slots=True)
class ChatRequest:
    """Body of a chat request."""

    message: str
    api_key: str
    previous_messages: list[Message] = field(default_factory=list)
    system_prompt: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize the request for the proxy."""
        payload: dict[str, Any] = {
            "message": self.message,
            "apiKey": self.api_key,
            "previousMessages": [message.to_payload() for message in self.previous_messages],
        }
        if self.system_prompt:
            payload["systemPrompt"] = self.system_prompt
        return payload
