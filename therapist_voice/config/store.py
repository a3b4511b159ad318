"""Persistence helpers for voice client settings."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from .paths import config_dir
from .settings import (
    AudioSettings,
    ChatSettings,
    ClientSettings,
    RecognitionSettings,
    ServerSettings,
    SpeechSettings,
    TypingSettings,
)


def settings_path() -> Path:
    """Primary path for persisted settings."""
    return config_dir() / "voice_settings.json"


def load_settings(path: Path | None = None) -> ClientSettings:
    """Load settings from disk (defaults when missing)."""
    path = path or settings_path()
    if not path.exists():
        return ClientSettings()

    raw_text = path.read_text(encoding="utf-8").lstrip("\ufeff")
    data = json.loads(raw_text)

    return ClientSettings(
        server=ServerSettings(**data.get("server", {})),
        audio=AudioSettings(**data.get("audio", {})),
        recognition=RecognitionSettings(**data.get("recognition", {})),
        speech=SpeechSettings(**data.get("speech", {})),
        chat=ChatSettings(**data.get("chat", {})),
        typing=TypingSettings(**data.get("typing", {})),
        log_level=data.get("log_level", "INFO"),
    )


def save_settings(settings: ClientSettings, path: Path | None = None) -> None:
    """Persist settings to disk."""
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")
