"""Microphone capture for the voice client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterable, Protocol

import sounddevice as sd

LOGGER = logging.getLogger(__name__)


class FrameConsumer(Protocol):
    """Protocol for streaming audio frames."""

    def __call__(self, frame: bytes) -> None: ...


@dataclass(slots=True)
class CaptureConfig:
    """Microphone capture configuration."""

    sample_rate: int = 16_000
    channels: int = 1
    frame_duration_ms: int = 100
    device_name: str | None = None


class MicrophoneCapture:
    """High level microphone controller producing pcm_s16le frames."""

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self.config = config or CaptureConfig()
        self._consumer: Callable[[bytes], None] | None = None
        self._stream: sd.RawInputStream | None = None
        self._lock = Lock()
        self._running = False

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def bind(self, consumer: FrameConsumer) -> None:
        """Register the frame consumer."""
        self._consumer = consumer

    def available_devices(self) -> Iterable[str]:
        """List available input devices."""
        return [
            device["name"]
            for device in sd.query_devices()
            if int(device.get("max_input_channels", 0)) > 0
        ]

    def start(self) -> None:
        """Start microphone capture.

        Raises ``sounddevice.PortAudioError`` when the device cannot be opened
        (missing device, permission denied).
        """
        if self._consumer is None:
            raise RuntimeError("No audio consumer registered.")
        with self._lock:
            if self._running:
                return
            frame_size = int(self.config.sample_rate * self.config.frame_duration_ms / 1000)
            stream = sd.RawInputStream(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype="int16",
                blocksize=frame_size,
                callback=self._on_frame,
                device=self.config.device_name,
            )
            try:
                stream.start()
            except sd.PortAudioError:
                stream.close()
                raise
            self._stream = stream
            self._running = True
            LOGGER.debug("Microphone capture started.")

    def stop(self) -> None:
        """Stop microphone capture."""
        with self._lock:
            if not self._running:
                return
            assert self._stream is not None
            try:
                self._stream.stop()
                self._stream.close()
            except sd.PortAudioError:  # pragma: no cover - device vanished
                LOGGER.warning("Microphone stream did not close cleanly.", exc_info=True)
            self._stream = None
            self._running = False
            LOGGER.debug("Microphone capture stopped.")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _on_frame(self, indata: bytes, frames: int, time, status) -> None:  # type: ignore[override]  # noqa: ANN401
        if status:  # pragma: no cover
            LOGGER.warning("Microphone status: %s", status)
        if self._consumer is not None:
            self._consumer(bytes(indata))
