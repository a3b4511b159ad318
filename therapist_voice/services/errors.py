"""Exceptions raised by the voice client services."""

from __future__ import annotations

from typing import Optional


class VoiceClientError(RuntimeError):
    """Base class for voice client failures."""


class MissingCredentialsError(VoiceClientError):
    """An API key required for the call is missing."""


class ChatRequestError(VoiceClientError):
    """The chat endpoint answered with an error or could not be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedReplyError(VoiceClientError):
    """The chat endpoint answered without reply text."""


class SynthesisError(VoiceClientError):
    """The synthesis endpoint failed or returned no audio."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AudioDecodeError(VoiceClientError):
    """Synthesized audio could not be decoded."""


class TranscriptionError(VoiceClientError):
    """The live transcription session failed."""


class PlaybackError(VoiceClientError):
    """The output device refused to play synthesized audio."""
