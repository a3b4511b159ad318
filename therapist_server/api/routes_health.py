from __future__ import annotations

from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def get_health() -> dict[str, object]:
    try:
        pkg_version = version("therapist-voice")
    except PackageNotFoundError:  # pragma: no cover - depends on installation
        pkg_version = "unknown"
    return {
        "status": "ok",
        "version": pkg_version,
        "time": datetime.now(timezone.utc).isoformat(),
    }
