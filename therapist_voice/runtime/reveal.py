"""Typing-style reveal of a completed assistant reply."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

RevealCallback = Callable[[Optional[int], str], None]


class TypingReveal:
    """Reveal one character per ``interval`` for the message at ``index``.

    ``on_update(index, visible)`` is called for every step; ``(None, "")``
    means no reveal is running.
    """

    def __init__(self, interval: float = 0.01, on_update: Optional[RevealCallback] = None) -> None:
        self.interval = interval
        self.on_update = on_update
        self.index: Optional[int] = None
        self.visible = ""
        self._text = ""
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, index: int, text: str) -> None:
        """Begin revealing ``text``; replaces any reveal in progress."""
        self.cancel()
        self.index = index
        self._text = text
        self.visible = ""
        self._task = asyncio.create_task(self._run())

    def finish(self) -> None:
        """Show the whole text at once, then end the reveal."""
        if self._task is None and self.index is None:
            return
        self._stop_task()
        self.visible = self._text
        self._emit()
        self._reset()
        self._emit()

    def cancel(self) -> None:
        """End the reveal; renderers fall back to the full stored message."""
        if self._task is None and self.index is None:
            return
        self._stop_task()
        self._reset()
        self._emit()

    async def _run(self) -> None:
        for position in range(1, len(self._text) + 1):
            self.visible = self._text[:position]
            self._emit()
            await asyncio.sleep(self.interval)
        self._task = None
        self._reset()
        self._emit()

    def _stop_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def _reset(self) -> None:
        self.index = None
        self.visible = ""
        self._text = ""

    def _emit(self) -> None:
        if self.on_update is not None:
            self.on_update(self.index, self.visible)
