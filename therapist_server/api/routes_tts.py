from __future__ import annotations

import base64
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field

from therapist_server.api.deps import get_speech_provider, resolve_key
from therapist_server.core.config import Settings, get_settings
from therapist_server.core.deepgram import DeepgramSpeech
from therapist_server.core.logger import get_logger

router = APIRouter(prefix="/api", tags=["tts"])
logger = get_logger("proxy.tts")

DOWNLOAD_FILENAME = "therapist-response.wav"


class SpeechBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    api_key: str = Field(default="", alias="apiKey")
    voice: Optional[str] = None


async def _synthesize(body: SpeechBody, settings: Settings, provider: DeepgramSpeech) -> bytes:
    api_key = resolve_key(body.api_key, settings.deepgram_api_key)
    text = body.text.strip()
    if not api_key or not text:
        raise HTTPException(status_code=400, detail="API key and text are required")
    voice = settings.find_voice(body.voice)
    audio = await provider.speak(api_key, text, voice)
    logger.info("Synthesized %d bytes with %s", len(audio), voice.id)
    return audio


@router.post("/tts")
async def tts(
    body: SpeechBody,
    settings: Settings = Depends(get_settings),
    provider: DeepgramSpeech = Depends(get_speech_provider),
) -> dict[str, str]:
    audio = await _synthesize(body, settings, provider)
    return {"audio": base64.b64encode(audio).decode("ascii"), "format": "audio/wav"}


@router.post("/download-audio")
async def download_audio(
    body: SpeechBody,
    settings: Settings = Depends(get_settings),
    provider: DeepgramSpeech = Depends(get_speech_provider),
) -> Response:
    """Return the synthesized reply as a downloadable WAV file."""
    audio = await _synthesize(body, settings, provider)
    return Response(
        content=audio,
        media_type="audio/wav",
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"'},
    )
