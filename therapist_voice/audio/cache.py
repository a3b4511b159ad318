"""Bounded cache of synthesized audio."""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional

from ..services.schemas import AudioPayload


CacheKey = tuple[str, str]


class AudioCache:
    """Keeps synthesized audio per (text, voice), evicting the oldest insertion first."""

    def __init__(self, max_entries: int = 20) -> None:
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[CacheKey, AudioPayload] = OrderedDict()

    @staticmethod
    def key(text: str, voice_id: str | None) -> CacheKey:
        return text, voice_id or "default"

    def get(self, text: str, voice_id: str | None) -> Optional[AudioPayload]:
        """Return the cached audio or None."""
        return self._entries.get(self.key(text, voice_id))

    def put(self, text: str, voice_id: str | None, payload: AudioPayload) -> None:
        """Store audio, evicting the oldest entry once over capacity."""
        self._entries[self.key(text, voice_id)] = payload
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)
