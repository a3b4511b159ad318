from therapist_voice.audio.cache import AudioCache
from therapist_voice.services.schemas import AudioPayload


def test_cache_is_keyed_by_text_and_voice():
    cache = AudioCache()
    luna = AudioPayload(b"luna")
    zeus = AudioPayload(b"zeus")
    cache.put("hello", "luna", luna)
    cache.put("hello", "zeus", zeus)

    assert cache.get("hello", "luna") is luna
    assert cache.get("hello", "zeus") is zeus
    assert cache.get("hello", "orion") is None
    assert len(cache) == 2


def test_missing_voice_uses_default_key():
    cache = AudioCache()
    payload = AudioPayload(b"x")
    cache.put("hi", None, payload)
    assert cache.get("hi", "default") is payload
    assert cache.get("hi", "") is payload


def test_cache_evicts_oldest_insertion():
    cache = AudioCache(max_entries=2)
    for text in ("one", "two", "three"):
        cache.put(text, "luna", AudioPayload(text.encode()))

    assert len(cache) == 2
    assert cache.get("one", "luna") is None
    assert cache.get("three", "luna") == AudioPayload(b"three")
