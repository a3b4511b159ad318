from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from therapist_server.api.deps import get_chat_provider, resolve_key
from therapist_server.core.anthropic import AnthropicClient, build_messages
from therapist_server.core.config import Settings, get_settings
from therapist_server.core.logger import get_logger

router = APIRouter(prefix="/api", tags=["chat"])
logger = get_logger("proxy.chat")


class ChatBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    api_key: str = Field(default="", alias="apiKey")
    previous_messages: list[dict[str, Any]] = Field(default_factory=list, alias="previousMessages")
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")


@router.post("/chat")
async def chat(
    body: ChatBody,
    settings: Settings = Depends(get_settings),
    provider: AnthropicClient = Depends(get_chat_provider),
) -> dict[str, str]:
    """Forward one user turn (with prior context) to Claude and return the reply."""
    api_key = resolve_key(body.api_key, settings.claude_api_key)
    message = body.message.strip()
    if not api_key or not message:
        raise HTTPException(status_code=400, detail="API key and message are required")
    messages = build_messages(message, body.previous_messages)
    reply = await provider.complete(
        api_key,
        system=body.system_prompt or settings.default_system_prompt,
        messages=messages,
    )
    logger.info("Claude replied (%d chars) to %d messages", len(reply), len(messages))
    return {"reply": reply}
