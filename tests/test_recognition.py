import asyncio
import threading

import pytest

from therapist_voice.runtime.recognition import SpeechRecognizer
from therapist_voice.services.schemas import TranscriptEvent


class FakeMicrophone:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.consumer = None
        self.started = 0
        self.stopped = 0

    def bind(self, consumer) -> None:
        self.consumer = consumer

    def start(self) -> None:
        if self.fail:
            raise OSError("no input device")
        self.started += 1

    def stop(self) -> None:
        self.stopped += 1


class SlowMicrophone(FakeMicrophone):
    """Blocks in start() until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.opening = threading.Event()
        self.release = threading.Event()

    def start(self) -> None:
        self.opening.set()
        self.release.wait(timeout=2)
        super().start()


class FakeTranscriber:
    """Yields events pushed by the test; ends once the frame stream ends."""

    def __init__(self) -> None:
        self.events: asyncio.Queue = asyncio.Queue()
        self.frames: list[bytes] = []

    async def stream(self, frames):
        async def drain() -> None:
            async for frame in frames:
                self.frames.append(frame)
            await self.events.put(None)

        drainer = asyncio.create_task(drain())
        try:
            while True:
                event = await self.events.get()
                if event is None:
                    break
                yield event
        finally:
            drainer.cancel()


def _recognizer(mic=None, **kwargs):
    transcriber = FakeTranscriber()
    completed: list[str] = []
    listening: list[bool] = []
    recognizer = SpeechRecognizer(
        transcriber,
        mic or FakeMicrophone(),
        silence_timeout=kwargs.pop("silence_timeout", 0.05),
        settle_delay=kwargs.pop("settle_delay", 0.01),
        on_complete=completed.append,
        on_listening_change=listening.append,
    )
    return recognizer, transcriber, completed, listening


@pytest.mark.asyncio
async def test_listening_flag_brackets_the_session():
    recognizer, _, _, listening = _recognizer()
    assert not recognizer.is_listening
    assert await recognizer.start_listening()
    assert recognizer.is_listening
    recognizer.stop_listening()
    assert not recognizer.is_listening
    assert listening == [True, False]


@pytest.mark.asyncio
async def test_silence_auto_stop_completes_once():
    recognizer, transcriber, completed, _ = _recognizer()
    await recognizer.start_listening()
    await transcriber.events.put(TranscriptEvent("I", final=False))
    await transcriber.events.put(TranscriptEvent("I feel", final=True))

    await asyncio.sleep(0.3)

    assert not recognizer.is_listening
    assert completed == ["I feel"]
    assert recognizer.microphone.stopped == 1


@pytest.mark.asyncio
async def test_segments_are_joined_with_spaces():
    recognizer, transcriber, completed, _ = _recognizer(silence_timeout=5)
    await recognizer.start_listening()
    await transcriber.events.put(TranscriptEvent("My boss", final=True))
    await transcriber.events.put(TranscriptEvent("yelled at me", final=True))
    await asyncio.sleep(0.02)
    assert recognizer.transcript == "My boss yelled at me"

    recognizer.stop_listening()
    await asyncio.sleep(0.05)
    assert completed == ["My boss yelled at me"]


@pytest.mark.asyncio
async def test_manual_stop_cancels_auto_stop():
    recognizer, transcriber, completed, listening = _recognizer(silence_timeout=0.1)
    await recognizer.start_listening()
    await transcriber.events.put(TranscriptEvent("hello", final=True))
    await asyncio.sleep(0.02)
    recognizer.stop_listening()

    await asyncio.sleep(0.3)

    assert completed == ["hello"]
    assert listening == [True, False]


@pytest.mark.asyncio
async def test_empty_transcript_does_not_complete():
    recognizer, _, completed, _ = _recognizer()
    await recognizer.start_listening()
    recognizer.stop_listening()
    await asyncio.sleep(0.1)
    assert completed == []


@pytest.mark.asyncio
async def test_microphone_failure_leaves_recognizer_idle():
    recognizer, _, _, listening = _recognizer(mic=FakeMicrophone(fail=True))
    assert await recognizer.start_listening() is False
    assert not recognizer.is_listening
    assert listening == []


@pytest.mark.asyncio
async def test_cancel_drops_pending_completion():
    recognizer, transcriber, completed, _ = _recognizer(silence_timeout=5, settle_delay=0.05)
    await recognizer.start_listening()
    await transcriber.events.put(TranscriptEvent("never mind", final=True))
    await asyncio.sleep(0.02)
    recognizer.stop_listening()
    recognizer.cancel()
    await asyncio.sleep(0.1)
    assert completed == []
    assert recognizer.transcript == ""


@pytest.mark.asyncio
async def test_captured_frames_reach_the_transcriber():
    recognizer, transcriber, _, _ = _recognizer(silence_timeout=5)
    await recognizer.start_listening()
    recognizer.microphone.consumer(b"\x01\x02")
    await asyncio.sleep(0.02)
    recognizer.stop_listening()
    await asyncio.sleep(0.02)
    assert transcriber.frames == [b"\x01\x02"]


async def _wait_for_thread_event(event: threading.Event, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not event.is_set():
        assert asyncio.get_running_loop().time() < deadline
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_stop_while_microphone_opens_stays_idle():
    mic = SlowMicrophone()
    recognizer, _, completed, listening = _recognizer(mic=mic)
    starting = asyncio.create_task(recognizer.start_listening())
    await _wait_for_thread_event(mic.opening)

    recognizer.stop_listening()
    mic.release.set()

    assert await starting is False
    assert not recognizer.is_listening
    assert mic.stopped == 1
    assert listening == []
    await asyncio.sleep(0.05)
    assert completed == []


@pytest.mark.asyncio
async def test_cancel_while_microphone_opens_stays_idle():
    mic = SlowMicrophone()
    recognizer, _, _, listening = _recognizer(mic=mic)
    starting = asyncio.create_task(recognizer.start_listening())
    await _wait_for_thread_event(mic.opening)

    recognizer.cancel()
    mic.release.set()

    assert await starting is False
    assert not recognizer.is_listening
    assert mic.stopped == 1
    assert listening == []

    # the next session opens normally
    mic.opening.clear()
    assert await recognizer.start_listening()
    assert recognizer.is_listening
    recognizer.cancel()
