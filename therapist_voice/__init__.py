"""Voice client for the brutal therapist chat."""

from __future__ import annotations

from typing import Any

__all__ = ["run"]


def run(*args: Any, **kwargs: Any) -> Any:
    """Entry point launching the console voice client (lazy import)."""
    from .app import run as _run

    return _run(*args, **kwargs)
