import json
from urllib.parse import parse_qs, urlparse

import pytest

from therapist_voice.config.settings import AudioSettings, RecognitionSettings
from therapist_voice.services.errors import MissingCredentialsError
from therapist_voice.services.transcription import DeepgramTranscriber, parse_transcript


async def _frames():
    yield b"\x00\x00"


def test_listen_url_carries_session_parameters():
    transcriber = DeepgramTranscriber("key", RecognitionSettings(), AudioSettings(sample_rate=16000))
    url = urlparse(transcriber.url())
    query = parse_qs(url.query)

    assert url.netloc == "api.deepgram.com"
    assert url.path == "/v1/listen"
    assert query["model"] == ["nova-3"]
    assert query["smart_format"] == ["true"]
    assert query["interim_results"] == ["true"]
    assert query["encoding"] == ["linear16"]
    assert query["sample_rate"] == ["16000"]
    assert query["channels"] == ["1"]


def test_parse_final_and_interim_results():
    final = parse_transcript(
        json.dumps(
            {
                "type": "Results",
                "is_final": True,
                "channel": {"alternatives": [{"transcript": "I feel", "confidence": 0.92}]},
            }
        )
    )
    assert final is not None
    assert final.text == "I feel"
    assert final.final is True
    assert final.confidence == 0.92

    interim = parse_transcript(json.dumps({"channel": {"alternatives": [{"transcript": "I"}]}}))
    assert interim is not None and interim.final is False


def test_parse_ignores_other_messages():
    assert parse_transcript(json.dumps({"type": "Metadata", "request_id": "x"})) is None
    assert parse_transcript(json.dumps({"type": "Results", "channel": {"alternatives": []}})) is None
    assert parse_transcript("not json") is None
    assert parse_transcript(b"\x00") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", "ENVIRONMENT_PROVIDED"])
async def test_stream_requires_literal_key(key):
    transcriber = DeepgramTranscriber(key)
    with pytest.raises(MissingCredentialsError):
        async for _ in transcriber.stream(_frames()):
            pass
