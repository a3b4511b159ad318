from __future__ import annotations

from typing import Any, Dict


class ProviderError(RuntimeError):
    """An upstream provider (Anthropic, Deepgram) call failed."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def error_response(message: str, *, trace_id: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": message}
    if trace_id is not None:
        payload["trace_id"] = trace_id
    return payload


def provider_message(resp: Any, fallback: str) -> str:
    """Pull the error text out of a provider's JSON error body."""
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("err_msg"):
            return str(data["err_msg"])
    return fallback
