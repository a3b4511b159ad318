"""Render-facing state of a conversation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..services.schemas import Message


THINKING_PLACEHOLDER = Message(role="assistant", content="", is_thinking=True)


@dataclass(slots=True, frozen=True)
class ConversationState:
    """Snapshot of the coordinator, rebuilt after every change."""

    messages: tuple[Message, ...] = ()
    current_transcript: str = ""
    is_listening: bool = False
    is_processing: bool = False
    is_speaking: bool = False
    active_playing_index: Optional[int] = None
    typing_index: Optional[int] = None
    currently_typing: str = ""

    @property
    def display_messages(self) -> tuple[Message, ...]:
        """Messages plus a thinking placeholder while a reply is awaited."""
        if self.is_processing:
            return self.messages + (THINKING_PLACEHOLDER,)
        return self.messages

    def visible_content(self, index: int) -> str:
        """Text to render for ``messages[index]``, honouring the typing reveal."""
        if index == self.typing_index:
            return self.currently_typing
        return self.messages[index].content
