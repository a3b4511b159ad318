"""Chat client sending user utterances to the LLM proxy."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from .api import ProxyAPI
from .errors import MalformedReplyError, MissingCredentialsError
from .schemas import ChatRequest, Message

LOGGER = logging.getLogger(__name__)


class ChatClient:
    """One request per utterance, with a trailing window of prior turns."""

    def __init__(self, api: ProxyAPI, *, system_prompt: str, history_limit: int = 10) -> None:
        self.api = api
        self.system_prompt = system_prompt
        self.history_limit = max(0, history_limit)

    async def send_message(self, utterance: str, history: Sequence[Message], api_key: str) -> str:
        """Send ``utterance`` with recent ``history`` and return the reply text.

        Failures propagate: MissingCredentialsError before any request,
        ChatRequestError for transport or HTTP errors, MalformedReplyError when
        the body carries no reply text.
        """
        if not api_key:
            raise MissingCredentialsError("Please enter your Claude API key")
        request = ChatRequest(
            message=utterance,
            api_key=api_key,
            previous_messages=self.trailing_history(history),
            system_prompt=self.system_prompt,
        )
        data = await self.api.chat(request)
        reply = extract_reply(data)
        if not reply:
            raise MalformedReplyError("Chat reply carries no text.")
        LOGGER.debug("Chat reply received (%d chars).", len(reply))
        return reply

    def trailing_history(self, history: Sequence[Message]) -> list[Message]:
        """Return the last ``history_limit`` settled messages."""
        if self.history_limit == 0:
            return []
        settled = [message for message in history if not message.is_thinking and message.content]
        return settled[-self.history_limit :]


def extract_reply(data: dict[str, Any]) -> str:
    """Read the reply text from a ``reply`` or Anthropic-style ``content`` field."""
    reply = data.get("reply")
    if isinstance(reply, str):
        return reply.strip()
    content = data.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        return "".join(parts).strip()
    return ""
