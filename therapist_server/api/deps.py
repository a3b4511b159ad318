from __future__ import annotations

from fastapi import Depends

from therapist_server.core.anthropic import AnthropicClient
from therapist_server.core.config import ENVIRONMENT_PROVIDED, Settings, get_settings
from therapist_server.core.deepgram import DeepgramSpeech


def get_chat_provider(settings: Settings = Depends(get_settings)) -> AnthropicClient:
    return AnthropicClient(settings)


def get_speech_provider(settings: Settings = Depends(get_settings)) -> DeepgramSpeech:
    return DeepgramSpeech(settings)


def resolve_key(supplied: str | None, configured: str | None) -> str:
    """Prefer a literal client key; the sentinel or no key means the server's own."""
    if supplied and supplied != ENVIRONMENT_PROVIDED:
        return supplied
    return configured or ""
