"""Speech playback for synthesized replies."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

import sounddevice as sd

from ..services.schemas import AudioClip

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PlaybackConfig:
    """Playback configuration."""

    device_name: str | None = None
    blocksize: int = 1024


class SpeechPlayback:
    """Play decoded clips on the output device and report when they end.

    ``on_finished`` runs on the audio thread once the last frame has been
    handed to the device. It is not called after ``stop()``.
    """

    def __init__(self, config: PlaybackConfig | None = None) -> None:
        self.config = config or PlaybackConfig()
        self._buffer = deque[bytes]()
        self._lock = threading.RLock()
        self._stream: sd.RawOutputStream | None = None
        self._on_finished: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def play(self, clip: AudioClip, on_finished: Callable[[], None]) -> None:
        """Start playing ``clip``, replacing whatever is playing."""
        self.stop()
        with self._lock:
            self._buffer.append(clip.pcm)
            self._on_finished = on_finished
            self._stream = sd.RawOutputStream(
                samplerate=clip.sample_rate,
                channels=clip.channels,
                dtype="int16",
                blocksize=self.config.blocksize,
                callback=self._on_write,
                finished_callback=self._on_stream_finished,
                device=self.config.device_name,
            )
            self._stream.start()

    def stop(self) -> None:
        """Stop playback and release the output stream."""
        with self._lock:
            self._buffer.clear()
            self._on_finished = None
            stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.abort()
                stream.close()
            except sd.PortAudioError:  # pragma: no cover - device vanished
                LOGGER.warning("Output stream did not close cleanly.", exc_info=True)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _on_write(self, outdata: bytearray, frames: int, time, status) -> None:  # type: ignore[override]  # noqa: ANN401
        if status:  # pragma: no cover
            LOGGER.warning("Playback status: %s", status)
        with self._lock:
            if not self._buffer:
                outdata[:] = b"\x00" * len(outdata)
                raise sd.CallbackStop
            chunk = self._buffer.popleft()
            if len(chunk) >= len(outdata):
                outdata[:] = chunk[: len(outdata)]
                remainder = chunk[len(outdata) :]
                if remainder:
                    self._buffer.appendleft(remainder)
            else:
                outdata[: len(chunk)] = chunk
                outdata[len(chunk) :] = b"\x00" * (len(outdata) - len(chunk))

    def _on_stream_finished(self) -> None:
        with self._lock:
            callback, self._on_finished = self._on_finished, None
        if callback is not None:
            callback()
