from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import httpx

from therapist_server.core.config import Settings
from therapist_server.core.errors import ProviderError, provider_message

logger = logging.getLogger(__name__)

_ROLES = {"user", "assistant"}


def build_messages(message: str, previous: Iterable[Any] | None = None) -> list[dict[str, str]]:
    """Return the Anthropic message list for ``message`` after ``previous``.

    Unknown roles and empty turns are dropped, the list is trimmed so it starts
    with a user turn, and ``message`` is appended unless it is already the
    last user turn.
    """
    messages: list[dict[str, str]] = []
    for item in previous or []:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role not in _ROLES or not isinstance(content, str) or not content.strip():
            continue
        messages.append({"role": role, "content": content})
    while messages and messages[0]["role"] != "user":
        messages.pop(0)
    last = messages[-1] if messages else None
    if last is None or last["role"] != "user" or last["content"] != message:
        messages.append({"role": "user", "content": message})
    return messages


def extract_text(data: Any) -> str:
    """Concatenate the text blocks of a Messages API response."""
    if not isinstance(data, dict):
        return ""
    blocks = data.get("content") or []
    if isinstance(blocks, str):
        return blocks
    parts = [
        str(block.get("text") or "")
        for block in blocks
        if isinstance(block, dict) and block.get("type", "text") == "text"
    ]
    return "".join(parts).strip()


class AnthropicClient:
    """Thin wrapper over the Anthropic Messages API."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = settings.anthropic_base_url.rstrip("/")
        self.version = settings.anthropic_version
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_tokens
        self.timeout = settings.provider_timeout
        self._transport = transport

    async def complete(
        self,
        api_key: str,
        *,
        system: str,
        messages: list[dict[str, str]],
    ) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": messages,
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.version,
        }
        logger.info("Sending conversation with %d messages to %s", len(messages), self.model)
        timeout = httpx.Timeout(self.timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                resp = await client.post(f"{self.base_url}/v1/messages", json=payload, headers=headers)
            except httpx.TimeoutException as exc:
                raise ProviderError(504, "Timed out waiting for Claude") from exc
            except httpx.RequestError as exc:
                raise ProviderError(502, f"Failed to reach Claude: {exc}") from exc
        if resp.is_error:
            raise ProviderError(resp.status_code, provider_message(resp, "Failed to get response from Claude"))
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(502, "Claude returned a non-JSON response") from exc
        text = extract_text(data)
        if not text:
            raise ProviderError(502, "Claude returned an empty reply")
        return text

