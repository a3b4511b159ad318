"""Speech capture: microphone + live transcription + silence auto-stop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Optional, Protocol

from ..services.schemas import TranscriptEvent
from ..services.transcription import Transcriber

LOGGER = logging.getLogger(__name__)

TranscriptCallback = Callable[[str], None]
CompletionCallback = Callable[[str], None]
ListeningCallback = Callable[[bool], None]


class Microphone(Protocol):
    """Subset of MicrophoneCapture used by the recognizer."""

    def bind(self, consumer: Callable[[bytes], None]) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class SpeechRecognizer:
    """Accumulates final transcript segments for one listening session.

    A session starts with ``start_listening()`` and ends with
    ``stop_listening()``, either called by the user or by the silence timer.
    When it ends with a non-empty transcript, ``on_complete`` fires once with
    the full text after ``settle_delay`` so late segments can still land.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        microphone: Microphone,
        *,
        silence_timeout: float = 3.0,
        settle_delay: float = 0.5,
        on_transcript: Optional[TranscriptCallback] = None,
        on_complete: Optional[CompletionCallback] = None,
        on_listening_change: Optional[ListeningCallback] = None,
    ) -> None:
        self.transcriber = transcriber
        self.microphone = microphone
        self.microphone.bind(self._handle_frame)
        self.silence_timeout = silence_timeout
        self.settle_delay = settle_delay
        self.on_transcript = on_transcript
        self.on_complete = on_complete
        self.on_listening_change = on_listening_change

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._listening = False
        self._starting = False
        self._stop_requested = False
        self._segments: list[str] = []
        self._session = 0
        self._stream_task: Optional[asyncio.Task[None]] = None
        self._silence_task: Optional[asyncio.Task[None]] = None
        self._settle_task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def is_settling(self) -> bool:
        """True between a stop and the completion callback."""
        return self._settle_task is not None and not self._settle_task.done()

    @property
    def transcript(self) -> str:
        """Space-joined final segments of the current session."""
        return " ".join(self._segments)

    async def start_listening(self) -> bool:
        """Acquire the microphone and open a transcription session.

        Returns False (and stays idle) when the microphone cannot be opened or
        when a stop or cancel arrives while it is still opening.
        """
        if self._listening:
            return True
        if self._starting:
            return False
        self._loop = asyncio.get_running_loop()
        if self.is_settling:
            # previous session still owes its completion
            self._cancel_task(self._settle_task)
            self._settle_task = None
            self._complete(self._session)
        self._cancel_task(self._stream_task)
        self._stream_task = None
        self._session += 1
        self._segments = []
        self._queue = asyncio.Queue(maxsize=64)
        session = self._session
        self._starting = True
        self._stop_requested = False
        try:
            await self._loop.run_in_executor(None, self.microphone.start)
        except Exception as exc:
            LOGGER.error("Error starting microphone: %s", exc)
            self._set_listening(False)
            return False
        finally:
            self._starting = False
        if session != self._session or self._stop_requested:
            LOGGER.info("Listening was stopped while the microphone was opening.")
            self._stop_requested = False
            self._release_microphone()
            return False
        self._set_listening(True)
        self._stream_task = asyncio.create_task(self._run_stream(session))
        return True

    def stop_listening(self) -> None:
        """Stop capture; the completion callback follows after the settle delay."""
        if self._starting:
            self._stop_requested = True
            return
        if not self._listening:
            return
        self._halt()
        session = self._session
        self._settle_task = asyncio.create_task(self._settle_and_complete(session))

    def cancel(self) -> None:
        """Stop capture without firing the completion callback."""
        self._session += 1
        self._cancel_task(self._settle_task)
        self._settle_task = None
        if self._listening:
            self._halt()
        self._cancel_task(self._stream_task)
        self._stream_task = None
        self._segments = []

    def clear_transcript(self) -> None:
        """Reset accumulated text to empty."""
        self._segments = []
        self._emit_transcript()

    async def frame_stream(self) -> AsyncIterator[bytes]:
        """Async generator yielding captured audio frames until the stop marker."""
        queue = self._queue
        while True:
            frame = await queue.get()
            if frame is None:
                break
            yield frame

    # ------------------------------------------------------------------ #
    # Internal streaming orchestration
    # ------------------------------------------------------------------ #
    async def _run_stream(self, session: int) -> None:
        try:
            async for event in self.transcriber.stream(self.frame_stream()):
                if session != self._session:
                    break
                self._handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.error("Transcription error: %s", exc)
            if session == self._session and self._listening:
                self._halt()
        finally:
            if self._stream_task is asyncio.current_task():
                self._stream_task = None

    def _handle_event(self, event: TranscriptEvent) -> None:
        text = event.text.strip()
        if not event.final or not text:
            return
        self._segments.append(text)
        self._emit_transcript()
        if self._listening:
            self._restart_silence_timer()

    def _restart_silence_timer(self) -> None:
        self._cancel_task(self._silence_task)
        self._silence_task = asyncio.create_task(self._silence_watch(self._session))

    async def _silence_watch(self, session: int) -> None:
        await asyncio.sleep(self.silence_timeout)
        self._silence_task = None
        if session == self._session and self._listening and self.transcript:
            LOGGER.info("No speech for %.1fs, stopping capture.", self.silence_timeout)
            self.stop_listening()

    async def _settle_and_complete(self, session: int) -> None:
        await asyncio.sleep(self.settle_delay)
        if session != self._session:
            return
        self._settle_task = None
        self._complete(session)

    def _complete(self, session: int) -> None:
        if session != self._session:
            return
        text = self.transcript.strip()
        if text and self.on_complete is not None:
            self.on_complete(text)

    def _halt(self) -> None:
        """Release the microphone and close the frame stream."""
        self._cancel_task(self._silence_task)
        self._silence_task = None
        self._release_microphone()
        self._signal_stop_marker()
        self._set_listening(False)

    def _release_microphone(self) -> None:
        try:
            self.microphone.stop()
        except Exception as exc:  # pragma: no cover - device vanished
            LOGGER.warning("Error stopping microphone: %s", exc)

    def _signal_stop_marker(self) -> None:
        """Insert a stop marker into the queue, handling saturation."""
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(None)

    # ------------------------------------------------------------------ #
    # Capture callbacks
    # ------------------------------------------------------------------ #
    def _handle_frame(self, frame: bytes) -> None:
        """Receive audio frames from the capture callback (sounddevice thread)."""
        if not self._listening or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._enqueue_frame, frame)
        except RuntimeError:  # pragma: no cover - loop closed
            self._listening = False

    def _enqueue_frame(self, frame: bytes) -> None:
        """Push a frame into the async queue, dropping the oldest if full."""
        if not self._listening:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(frame)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _set_listening(self, listening: bool) -> None:
        changed = self._listening != listening
        self._listening = listening
        if changed and self.on_listening_change is not None:
            self.on_listening_change(listening)

    def _emit_transcript(self) -> None:
        if self.on_transcript is not None:
            self.on_transcript(self.transcript)

    @staticmethod
    def _cancel_task(task: Optional[asyncio.Task[Any]]) -> None:
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
