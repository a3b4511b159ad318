"""Unified configuration of the proxy server."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


ENVIRONMENT_PROVIDED = "ENVIRONMENT_PROVIDED"

DEFAULT_SYSTEM_PROMPT = """You are a terrible therapist who gives absurd, comically bad advice. Your advice should be funny, ridiculous, and clearly not meant to be followed, but NEVER harmful, violent, or unethical.

CONTENT GUIDELINES:
1. Be silly and ridiculous, not dark or harmful
2. Avoid references to gore, violence, self-harm, or anything unethical
3. Focus on comically impractical, funny solutions
4. Use humor that's goofy and absurd, not mean-spirited

STRICT FORMATTING REQUIREMENTS:
1. ALWAYS respond with EXACTLY 1-2 sentences MAXIMUM - this is critically important
2. Keep responses extremely brief and to the point - never more than 20-30 words total
3. Be snappy and funny with hilariously impractical advice
4. Use casual, conversational language"""


class VoiceEntry(BaseModel):
    """One Deepgram Aura voice offered to clients."""

    id: str
    name: str
    model: str
    language: str | None = None


DEFAULT_VOICES: list[VoiceEntry] = [
    VoiceEntry(id="luna", name="Luna (Female US)", model="aura-luna-en", language="en-US"),
    VoiceEntry(id="stella", name="Stella (Female US)", model="aura-stella-en", language="en-US"),
    VoiceEntry(id="asteria", name="Asteria (Female US)", model="aura-asteria-en", language="en-US"),
    VoiceEntry(id="athena", name="Athena (Female UK)", model="aura-athena-en", language="en-GB"),
    VoiceEntry(id="hera", name="Hera (Female US)", model="aura-hera-en", language="en-US"),
    VoiceEntry(id="zeus", name="Zeus (Male US)", model="aura-zeus-en", language="en-US"),
    VoiceEntry(id="arcas", name="Arcas (Male US)", model="aura-arcas-en", language="en-US"),
    VoiceEntry(id="orion", name="Orion (Male US)", model="aura-orion-en", language="en-US"),
    VoiceEntry(id="perseus", name="Perseus (Male US)", model="aura-perseus-en", language="en-US"),
    VoiceEntry(id="helios", name="Helios (Male UK)", model="aura-helios-en", language="en-GB"),
]


class Settings(BaseSettings):
    """Global proxy settings (environment, .env, then config.json)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 3002
    cors_origins: list[str] = ["*"]

    # Provider keys
    deepgram_api_key: str | None = None
    claude_api_key: str | None = None
    expose_keys: bool = True

    # Anthropic
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    claude_model: str = "claude-3-5-haiku-20241022"
    claude_max_tokens: int = 1000
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Deepgram
    deepgram_base_url: str = "https://api.deepgram.com"
    tts_sample_rate: int = 24_000
    voices: list[VoiceEntry] = DEFAULT_VOICES

    provider_timeout: float = 30.0

    # Logs
    log_dir: str = "logs"
    log_rotate_mb: int = 5
    log_retention_days: int = 7

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls.json_config_settings_source,
            file_secret_settings,
        )

    @staticmethod
    def json_config_settings_source() -> dict[str, object]:
        """Load config.json at the repository root when present."""
        config_path = Path(__file__).resolve().parents[2] / "config.json"
        if config_path.is_file():
            try:
                return json.loads(config_path.read_text())
            except ValueError:
                return {}
        return {}

    def find_voice(self, voice_id: str | None) -> VoiceEntry:
        """Return the requested voice, falling back to the first one."""
        for voice in self.voices:
            if voice.id == voice_id:
                return voice
        return self.voices[0]


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
