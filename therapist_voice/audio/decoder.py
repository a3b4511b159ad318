"""Decoding of synthesized audio into PCM frames."""

from __future__ import annotations

import io
import wave

from ..services.errors import AudioDecodeError
from ..services.schemas import AudioClip, AudioPayload


_WAV_TYPES = ("audio/wav", "audio/wave", "audio/x-wav", "audio/vnd.wave")


def decode_audio(payload: AudioPayload) -> AudioClip:
    """Decode an AudioPayload into an AudioClip.

    WAV containers are parsed with the ``wave`` module. Headerless
    ``audio/l16`` payloads carry their sample rate and channel count in the
    mime parameters (``audio/l16; rate=24000; channels=1``).
    """
    mime, params = _parse_mime(payload.format)
    if not payload.data:
        raise AudioDecodeError("No audio data returned from TTS API")
    if mime in _WAV_TYPES:
        return _decode_wav(payload.data)
    if mime == "audio/l16":
        try:
            rate = int(params.get("rate", "24000"))
            channels = int(params.get("channels", "1"))
        except ValueError as exc:
            raise AudioDecodeError(f"Invalid L16 parameters: {payload.format}") from exc
        return AudioClip(pcm=payload.data, sample_rate=rate, channels=channels, sample_width=2)
    raise AudioDecodeError(f"Unsupported audio format: {payload.format}")


def _decode_wav(data: bytes) -> AudioClip:
    try:
        with wave.open(io.BytesIO(data), "rb") as reader:
            sample_rate = reader.getframerate()
            channels = reader.getnchannels()
            sample_width = reader.getsampwidth()
            pcm = reader.readframes(reader.getnframes())
    except (wave.Error, EOFError) as exc:
        raise AudioDecodeError(f"Invalid WAV data: {exc}") from exc
    if sample_width != 2:
        raise AudioDecodeError(f"Unsupported sample width: {sample_width * 8} bits")
    return AudioClip(pcm=pcm, sample_rate=sample_rate, channels=channels, sample_width=sample_width)


def _parse_mime(value: str) -> tuple[str, dict[str, str]]:
    parts = [part.strip() for part in (value or "").split(";") if part.strip()]
    if not parts:
        return "", {}
    params: dict[str, str] = {}
    for part in parts[1:]:
        name, _, raw = part.partition("=")
        params[name.strip().lower()] = raw.strip().strip('"')
    return parts[0].lower(), params
