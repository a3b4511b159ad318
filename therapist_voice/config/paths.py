"""Filesystem helpers for the voice client."""

from __future__ import annotations

import os
from pathlib import Path


def client_home() -> Path:
    """Return the root folder holding client state."""
    override = os.environ.get("THERAPIST_VOICE_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".therapist_voice"


def config_dir() -> Path:
    """Directory storing local configuration."""
    root = client_home() / "config"
    root.mkdir(parents=True, exist_ok=True)
    return root


def downloads_dir() -> Path:
    """Directory receiving downloaded audio files."""
    root = client_home() / "downloads"
    root.mkdir(parents=True, exist_ok=True)
    return root


def download_path(filename: str, index: int) -> Path:
    """Target for a message's audio, one file per message index."""
    name = Path(filename).name or "therapist-response.wav"
    stem, suffix = Path(name).stem, Path(name).suffix or ".wav"
    return downloads_dir() / f"{stem}-{index}{suffix}"
