from __future__ import annotations

import logging
from typing import Optional

import httpx

from therapist_server.core.config import Settings, VoiceEntry
from therapist_server.core.errors import ProviderError, provider_message

logger = logging.getLogger(__name__)


class DeepgramSpeech:
    """Deepgram Aura text-to-speech, returning WAV (linear16) audio."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = settings.deepgram_base_url.rstrip("/")
        self.sample_rate = settings.tts_sample_rate
        self.timeout = settings.provider_timeout
        self._transport = transport

    async def speak(self, api_key: str, text: str, voice: VoiceEntry) -> bytes:
        params = {
            "model": voice.model,
            "encoding": "linear16",
            "container": "wav",
            "sample_rate": str(self.sample_rate),
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Token {api_key}",
        }
        logger.info("Deepgram TTS request using voice %s", voice.name)
        timeout = httpx.Timeout(self.timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    f"{self.base_url}/v1/speak",
                    params=params,
                    json={"text": text},
                    headers=headers,
                )
            except httpx.TimeoutException as exc:
                raise ProviderError(504, "Timed out generating speech") from exc
            except httpx.RequestError as exc:
                raise ProviderError(502, f"Failed to generate speech: {exc}") from exc
        if resp.is_error:
            raise ProviderError(resp.status_code, provider_message(resp, "Failed to generate speech"))
        if not resp.content:
            raise ProviderError(502, "Deepgram returned no audio")
        return resp.content
