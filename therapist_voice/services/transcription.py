"""Live transcription over the Deepgram streaming WebSocket."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, AsyncIterator, Optional, Protocol
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import WebSocketException

from ..config.settings import AudioSettings, RecognitionSettings
from .errors import MissingCredentialsError, TranscriptionError
from .schemas import ENVIRONMENT_PROVIDED, TranscriptEvent

LOGGER = logging.getLogger(__name__)


class Transcriber(Protocol):
    """Turns a stream of PCM frames into transcript events."""

    def stream(self, frames: AsyncIterator[bytes]) -> AsyncIterator[TranscriptEvent]: ...


class DeepgramTranscriber:
    """Streams pcm_s16le frames to Deepgram and yields transcript events."""

    def __init__(
        self,
        api_key: str,
        settings: RecognitionSettings | None = None,
        audio: AudioSettings | None = None,
    ) -> None:
        self.api_key = api_key
        self.settings = settings or RecognitionSettings()
        self.audio = audio or AudioSettings()

    def url(self) -> str:
        """Return the listen URL with the session parameters."""
        params = {
            "model": self.settings.model,
            "smart_format": str(self.settings.smart_format).lower(),
            "interim_results": str(self.settings.interim_results).lower(),
            "encoding": "linear16",
            "sample_rate": str(self.audio.sample_rate),
            "channels": str(self.audio.channels),
        }
        return f"{self.settings.endpoint}?{urlencode(params)}"

    async def stream(self, frames: AsyncIterator[bytes]) -> AsyncIterator[TranscriptEvent]:
        """Send audio frames and receive transcriptions until the stream closes."""
        if not self.api_key:
            raise MissingCredentialsError("Deepgram API key is required")
        if self.api_key == ENVIRONMENT_PROVIDED:
            raise MissingCredentialsError("Live transcription needs a literal Deepgram API key.")

        headers = [("Authorization", f"Token {self.api_key}")]
        try:
            async with ws_connect(self.url(), additional_headers=headers) as websocket:
                LOGGER.info("Transcription connection opened.")
                event_queue: asyncio.Queue[Any] = asyncio.Queue()

                async def receiver() -> None:
                    try:
                        async for message in websocket:
                            event = parse_transcript(message)
                            if event:
                                await event_queue.put(event)
                    except Exception as exc:
                        await event_queue.put(exc)
                    finally:
                        await event_queue.put(None)

                async def sender() -> None:
                    async for chunk in frames:
                        await websocket.send(chunk)
                    await websocket.send(json.dumps({"type": "CloseStream"}))

                receiver_task = asyncio.create_task(receiver())
                sender_task = asyncio.create_task(sender())
                try:
                    while True:
                        item = await event_queue.get()
                        if item is None:
                            break
                        if isinstance(item, Exception):
                            raise item
                        yield item
                finally:
                    for task in (sender_task, receiver_task):
                        task.cancel()
                        with contextlib.suppress(asyncio.CancelledError, Exception):
                            await task
                    LOGGER.info("Transcription connection closed.")
        except (WebSocketException, OSError) as exc:
            raise TranscriptionError(f"Transcription session failed: {exc}") from exc


def parse_transcript(raw: str | bytes) -> Optional[TranscriptEvent]:
    """Parse a Deepgram ``Results`` message into a TranscriptEvent."""
    if not raw or isinstance(raw, bytes):
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict) or payload.get("type", "Results") != "Results":
        return None
    alternatives = (payload.get("channel") or {}).get("alternatives") or []
    if not alternatives:
        return None
    best = alternatives[0]
    return TranscriptEvent(
        text=str(best.get("transcript") or ""),
        final=bool(payload.get("is_final", False)),
        confidence=best.get("confidence"),
    )
