import asyncio

import pytest

from therapist_voice.config.settings import SpeechSettings
from therapist_voice.runtime.synthesizer import SpeechSynthesizer
from therapist_voice.services.errors import AudioDecodeError, SynthesisError
from therapist_voice.services.schemas import AudioClip, AudioPayload, PlaybackResult


class FakeBackend:
    def __init__(self, gate: asyncio.Event | None = None, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.gate = gate
        self.error = error

    async def synthesize(self, text: str, *, voice: str, api_key: str) -> AudioPayload:
        self.calls.append((text, voice))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return AudioPayload(f"{voice}:{text}".encode(), "audio/l16; rate=16000")


class FakePlayer:
    """Finishes playback on the next loop iteration unless ``hold`` is set."""

    def __init__(self, hold: bool = False) -> None:
        self.hold = hold
        self.played: list[bytes] = []
        self.stops = 0

    def play(self, clip: AudioClip, on_finished) -> None:
        self.played.append(clip.pcm)
        if not self.hold:
            asyncio.get_running_loop().call_soon(on_finished)

    def stop(self) -> None:
        self.stops += 1


def _pcm_decoder(payload: AudioPayload) -> AudioClip:
    return AudioClip(pcm=payload.data, sample_rate=16000)


def _synth(backend=None, player=None, **settings) -> SpeechSynthesizer:
    return SpeechSynthesizer(
        backend or FakeBackend(),
        player or FakePlayer(),
        api_key="dg",
        settings=SpeechSettings(**settings),
        decoder=_pcm_decoder,
    )


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        assert asyncio.get_running_loop().time() < deadline
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_same_text_and_voice_hits_cache():
    backend, player = FakeBackend(), FakePlayer()
    synth = _synth(backend, player)

    assert await synth.speak("Buy a boat.") is PlaybackResult.FINISHED
    assert await synth.speak("Buy a boat.") is PlaybackResult.FINISHED

    assert len(backend.calls) == 1
    assert player.played[0] == player.played[1]
    assert not synth.is_speaking and not synth.is_busy


@pytest.mark.asyncio
async def test_voice_change_misses_cache():
    backend = FakeBackend()
    synth = _synth(backend)
    await synth.speak("hi")
    synth.voice_id = "zeus"
    await synth.speak("hi")
    assert backend.calls == [("hi", "luna"), ("hi", "zeus")]


@pytest.mark.asyncio
async def test_second_speak_is_rejected_while_busy():
    gate = asyncio.Event()
    synth = _synth(FakeBackend(gate=gate))
    first = asyncio.create_task(synth.speak("first"))
    await asyncio.sleep(0)

    assert await synth.speak("second") is PlaybackResult.REJECTED

    gate.set()
    assert await first is PlaybackResult.FINISHED


@pytest.mark.asyncio
async def test_empty_text_or_missing_key_is_rejected():
    backend = FakeBackend()
    synth = _synth(backend)
    assert await synth.speak("   ") is PlaybackResult.REJECTED
    synth.api_key = ""
    assert await synth.speak("hello") is PlaybackResult.REJECTED
    assert backend.calls == []


@pytest.mark.asyncio
async def test_stop_while_idle_is_a_no_op():
    synth = _synth()
    synth.stop()
    synth.stop()
    assert not synth.is_speaking
    assert not synth.is_busy


@pytest.mark.asyncio
async def test_stop_during_playback():
    states: list[bool] = []
    synth = _synth(player=FakePlayer(hold=True))
    synth.set_state_callback(states.append)
    task = asyncio.create_task(synth.speak("a long reply"))
    await _wait_until(lambda: synth.is_speaking)

    synth.stop()

    assert await task is PlaybackResult.STOPPED
    assert not synth.is_speaking and not synth.is_busy
    assert states == [True, False]
    synth.stop()


@pytest.mark.asyncio
async def test_stop_during_fetch_never_plays():
    gate = asyncio.Event()
    player = FakePlayer()
    synth = _synth(FakeBackend(gate=gate), player)
    task = asyncio.create_task(synth.speak("hello"))
    await asyncio.sleep(0.01)

    synth.stop()

    assert await task is PlaybackResult.STOPPED
    gate.set()
    await asyncio.sleep(0.01)
    assert player.played == []
    assert not synth.is_busy


@pytest.mark.asyncio
async def test_safety_timeout_forces_release():
    synth = _synth(player=FakePlayer(hold=True), safety_margin=0.05)
    result = await asyncio.wait_for(synth.speak("hi"), timeout=1.0)
    assert result is PlaybackResult.TIMED_OUT
    assert not synth.is_speaking and not synth.is_busy


@pytest.mark.asyncio
async def test_prepare_timeout():
    synth = _synth(FakeBackend(gate=asyncio.Event()), prepare_timeout=0.02)
    assert await synth.speak("slow") is PlaybackResult.TIMED_OUT
    assert not synth.is_busy


@pytest.mark.asyncio
async def test_backend_failure_propagates_and_resets():
    synth = _synth(FakeBackend(error=SynthesisError("Deepgram down", status_code=502)))
    with pytest.raises(SynthesisError):
        await synth.speak("hello")
    assert not synth.is_busy and not synth.is_speaking


@pytest.mark.asyncio
async def test_playback_started_fires_once_per_utterance():
    started: list[str] = []
    synth = _synth()
    synth.set_playback_started_callback(lambda: started.append("go"))
    await synth.speak("one")
    await synth.speak("two")
    assert started == ["go", "go"]


@pytest.mark.asyncio
async def test_undecodable_audio_is_not_cached():
    class GarbageFirst(FakeBackend):
        async def synthesize(self, text: str, *, voice: str, api_key: str) -> AudioPayload:
            payload = await super().synthesize(text, voice=voice, api_key=api_key)
            if len(self.calls) == 1:
                return AudioPayload(b"garbage", "audio/wav")
            return payload

    def strict_decoder(payload: AudioPayload) -> AudioClip:
        if payload.data == b"garbage":
            raise AudioDecodeError("Invalid WAV data")
        return _pcm_decoder(payload)

    backend, player = GarbageFirst(), FakePlayer()
    synth = SpeechSynthesizer(backend, player, api_key="dg", decoder=strict_decoder)

    with pytest.raises(AudioDecodeError):
        await synth.speak("Buy a boat.")
    assert len(synth.cache) == 0
    assert not synth.is_busy

    assert await synth.speak("Buy a boat.") is PlaybackResult.FINISHED
    assert len(backend.calls) == 2
    assert player.played == [b"luna:Buy a boat."]


def test_safety_bound_uses_duration_or_text_estimate():
    synth = _synth()
    clip = AudioClip(pcm=b"\x00" * 32000, sample_rate=16000)
    assert synth.safety_bound(clip, "ignored") == pytest.approx(3.0)

    unknown = AudioClip(pcm=b"", sample_rate=16000)
    assert synth.safety_bound(unknown, "x" * 30) == pytest.approx(4.0)
    assert synth.safety_bound(unknown, "hi") == pytest.approx(3.0)
