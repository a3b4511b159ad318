from __future__ import annotations

from fastapi import APIRouter, Depends

from therapist_server.core.config import ENVIRONMENT_PROVIDED, Settings, get_settings

router = APIRouter(prefix="/api", tags=["keys"])


def _shared(value: str | None, expose: bool) -> str:
    if not value:
        return ""
    return value if expose else ENVIRONMENT_PROVIDED


@router.get("/keys")
async def get_keys(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Return the provider keys configured on the server.

    With ``expose_keys`` disabled, configured keys are masked by the
    ``ENVIRONMENT_PROVIDED`` sentinel and the server injects them itself.
    """
    return {
        "deepgramApiKey": _shared(settings.deepgram_api_key, settings.expose_keys),
        "claudeApiKey": _shared(settings.claude_api_key, settings.expose_keys),
    }


@router.get("/voices")
async def get_voices(settings: Settings = Depends(get_settings)) -> dict[str, list[dict[str, object]]]:
    return {"voices": [voice.model_dump() for voice in settings.voices]}
