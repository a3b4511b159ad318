"""Text-to-speech playback state machine."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

from ..audio.cache import AudioCache
from ..audio.decoder import decode_audio
from ..config.settings import SpeechSettings
from ..services.errors import PlaybackError
from ..services.schemas import AudioClip, AudioPayload, PlaybackResult

LOGGER = logging.getLogger(__name__)

Decoder = Callable[[AudioPayload], AudioClip]


class AudioPlayer(Protocol):
    """Output device able to play one clip at a time (SpeechPlayback)."""

    def play(self, clip: AudioClip, on_finished: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


class SynthesisBackend(Protocol):
    """Remote synthesis call (ProxyAPI.synthesize)."""

    async def synthesize(self, text: str, *, voice: str, api_key: str) -> AudioPayload: ...


class SpeechSynthesizer:
    """Owns one utterance at a time: fetch (or reuse) audio, play it, release it.

    ``speak`` settles into a PlaybackResult. Transport failures raise
    SynthesisError, undecodable audio raises AudioDecodeError and a device
    that refuses the clip raises PlaybackError. ``is_speaking`` and the
    in-flight flag are always reset first.
    """

    def __init__(
        self,
        backend: SynthesisBackend,
        player: AudioPlayer,
        *,
        api_key: str,
        voice_id: str = "luna",
        settings: SpeechSettings | None = None,
        decoder: Decoder = decode_audio,
    ) -> None:
        self.backend = backend
        self.player = player
        self.api_key = api_key
        self.voice_id = voice_id
        self.settings = settings or SpeechSettings()
        self.decoder = decoder
        self.cache = AudioCache(self.settings.cache_max_entries)

        self._in_flight = False
        self._speaking = False
        self._done: Optional[asyncio.Future[PlaybackResult]] = None
        self._playback_started_callback: Optional[Callable[[], None]] = None
        self._state_callback: Optional[Callable[[bool], None]] = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def is_speaking(self) -> bool:
        """True while audio is producing sound."""
        return self._speaking

    @property
    def is_busy(self) -> bool:
        """True while an utterance is being fetched or played."""
        return self._in_flight

    def set_playback_started_callback(self, callback: Optional[Callable[[], None]]) -> None:
        """Register a callback fired the instant playback begins."""
        self._playback_started_callback = callback

    def set_state_callback(self, callback: Optional[Callable[[bool], None]]) -> None:
        """Register a callback triggered when playback starts or stops."""
        self._state_callback = callback

    async def speak(self, text: str) -> PlaybackResult:
        """Synthesize ``text`` and play it to the end, a stop, or the safety timeout."""
        if self._in_flight or not text.strip():
            LOGGER.info("Rejecting TTS request - already in progress or empty text.")
            return PlaybackResult.REJECTED
        if not self.api_key:
            LOGGER.error("No Deepgram API key provided.")
            return PlaybackResult.REJECTED

        loop = asyncio.get_running_loop()
        voice_id = self.voice_id
        self._in_flight = True
        self.player.stop()
        done: asyncio.Future[PlaybackResult] = loop.create_future()
        self._done = done
        try:
            payload = await self._obtain_audio(text, voice_id, done)
            if payload is None:
                return done.result() if done.done() else PlaybackResult.STOPPED
            clip = self.decoder(payload)
            self.cache.put(text, voice_id, payload)
            if done.done():
                return done.result()

            def _finished() -> None:
                loop.call_soon_threadsafe(self._settle, done, PlaybackResult.FINISHED)

            try:
                self.player.play(clip, _finished)
            except Exception as exc:
                raise PlaybackError(f"Audio playback failed: {exc}") from exc
            self._set_speaking(True)
            self._emit_playback_started()
            bound = self.safety_bound(clip, text)
            try:
                return await asyncio.wait_for(asyncio.shield(done), timeout=bound)
            except asyncio.TimeoutError:
                LOGGER.warning("Safety timeout reached after %.1fs, forcing stop.", bound)
                self._settle(done, PlaybackResult.TIMED_OUT)
                return PlaybackResult.TIMED_OUT
        finally:
            if self._done is done:
                self._release()

    def stop(self) -> None:
        """Stop playback immediately; safe to call at any time."""
        done = self._done
        if done is not None:
            self._settle(done, PlaybackResult.STOPPED)
            self._release()
        else:
            try:
                self.player.stop()
            except Exception as exc:  # pragma: no cover - device vanished
                LOGGER.warning("Error stopping playback: %s", exc)

    def safety_bound(self, clip: AudioClip, text: str) -> float:
        """Deadline for a playback: audio length, or a text estimate, plus margin."""
        duration = clip.duration
        if not duration:
            duration = max(1.0, len(text) / max(self.settings.chars_per_second, 1.0))
        return duration + self.settings.safety_margin

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _obtain_audio(
        self, text: str, voice_id: str, done: asyncio.Future[PlaybackResult]
    ) -> Optional[AudioPayload]:
        cached = self.cache.get(text, voice_id)
        if cached is not None:
            LOGGER.debug("Using cached audio.")
            return cached
        fetch = asyncio.ensure_future(self.backend.synthesize(text, voice=voice_id, api_key=self.api_key))
        finished, _pending = await asyncio.wait(
            {fetch, done},
            timeout=self.settings.prepare_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if fetch not in finished:
            fetch.cancel()
            if done.done():
                return None
            LOGGER.warning("Audio preparation timeout after %.1fs.", self.settings.prepare_timeout)
            self._settle(done, PlaybackResult.TIMED_OUT)
            return None
        payload = fetch.result()
        if done.done():
            return None
        return payload

    def _settle(self, done: asyncio.Future[PlaybackResult], result: PlaybackResult) -> None:
        if not done.done():
            done.set_result(result)

    def _release(self) -> None:
        self._done = None
        self._in_flight = False
        try:
            self.player.stop()
        except Exception as exc:  # pragma: no cover - device vanished
            LOGGER.warning("Error releasing playback: %s", exc)
        self._set_speaking(False)

    def _set_speaking(self, speaking: bool) -> None:
        if self._speaking == speaking:
            return
        self._speaking = speaking
        if self._state_callback is not None:
            self._state_callback(speaking)

    def _emit_playback_started(self) -> None:
        if self._playback_started_callback is not None:
            self._playback_started_callback()
