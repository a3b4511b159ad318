import asyncio

import pytest

from therapist_voice.runtime.reveal import TypingReveal


@pytest.mark.asyncio
async def test_reveal_types_then_resets():
    updates: list[tuple] = []
    reveal = TypingReveal(0.001, on_update=lambda index, visible: updates.append((index, visible)))
    reveal.start(1, "Run")
    assert reveal.active
    await asyncio.sleep(0.1)

    assert updates[:3] == [(1, "R"), (1, "Ru"), (1, "Run")]
    assert updates[-1] == (None, "")
    assert not reveal.active
    assert reveal.index is None


@pytest.mark.asyncio
async def test_cancel_stops_reveal():
    updates: list[tuple] = []
    reveal = TypingReveal(10, on_update=lambda index, visible: updates.append((index, visible)))
    reveal.start(0, "a long reply")
    await asyncio.sleep(0)
    reveal.cancel()
    assert not reveal.active
    assert updates[-1] == (None, "")
    count = len(updates)
    reveal.cancel()
    assert len(updates) == count


@pytest.mark.asyncio
async def test_finish_shows_full_text_then_resets():
    updates: list[tuple] = []
    reveal = TypingReveal(10, on_update=lambda index, visible: updates.append((index, visible)))
    reveal.start(2, "Buy a kayak.")
    await asyncio.sleep(0)
    reveal.finish()
    assert updates[-2:] == [(2, "Buy a kayak."), (None, "")]
    assert not reveal.active
