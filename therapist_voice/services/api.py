"""HTTP client used to talk to the therapist proxy."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Optional

import httpx

from ..config.settings import ClientSettings
from .errors import ChatRequestError, MalformedReplyError, SynthesisError, VoiceClientError
from .schemas import AudioPayload, ChatRequest, Credentials, VoiceModel


class ProxyAPI:
    """Async client for the proxy endpoints under /api."""

    def __init__(
        self,
        settings: ClientSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        timeout = httpx.Timeout(
            connect=settings.server.connect_timeout,
            read=settings.server.read_timeout,
            write=settings.server.connect_timeout,
            pool=None,
        )
        self._client = httpx.AsyncClient(
            base_url=settings.server.base_url,
            verify=settings.server.verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    async def fetch_voices(self) -> list[VoiceModel]:
        """Return the voice catalog advertised by the proxy."""
        response = await self._get("/api/voices")
        data = self._json(response)
        voices = data.get("voices") if isinstance(data, dict) else None
        if not isinstance(voices, list):
            return []
        return [VoiceModel.from_payload(item) for item in voices if isinstance(item, dict) and item.get("id")]

    async def fetch_keys(self) -> Credentials:
        """Return the keys the proxy is willing to share (possibly sentinels)."""
        response = await self._get("/api/keys")
        data = self._json(response)
        if not isinstance(data, dict):
            return Credentials()
        return Credentials(
            deepgram_api_key=str(data.get("deepgramApiKey") or ""),
            claude_api_key=str(data.get("claudeApiKey") or ""),
        )

    async def chat(self, request: ChatRequest) -> dict[str, Any]:
        """Send one chat request and return the decoded JSON body."""
        try:
            response = await self._client.post("/api/chat", json=request.to_payload())
        except httpx.TimeoutException as exc:
            raise ChatRequestError("Timeout while waiting for the chat reply.") from exc
        except httpx.HTTPError as exc:
            raise ChatRequestError(f"Chat request failed: {exc}") from exc
        if response.is_error:
            raise ChatRequestError(
                self._error_message(response, f"API call failed: {response.status_code}"),
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedReplyError(f"Non-JSON reply from proxy: {response.text[:200]}") from exc
        if not isinstance(data, dict):
            raise MalformedReplyError("Reply body is not an object.")
        return data

    async def synthesize(self, text: str, *, voice: str, api_key: str) -> AudioPayload:
        """Ask the proxy to synthesize ``text`` and return the encoded audio."""
        try:
            response = await self._client.post(
                "/api/tts",
                json={"text": text, "apiKey": api_key, "voice": voice},
            )
        except httpx.TimeoutException as exc:
            raise SynthesisError("Timeout while generating speech.") from exc
        except httpx.HTTPError as exc:
            raise SynthesisError(f"TTS request failed: {exc}") from exc
        if response.is_error:
            raise SynthesisError(
                self._error_message(response, f"TTS request failed: {response.status_code}"),
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise SynthesisError("Non-JSON reply from TTS endpoint.") from exc
        encoded = data.get("audio") if isinstance(data, dict) else None
        if not encoded:
            raise SynthesisError("No audio data returned from TTS API")
        try:
            audio = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SynthesisError("Audio payload is not valid base64.") from exc
        return AudioPayload(data=audio, format=str(data.get("format") or "audio/wav"))

    async def download_audio(self, text: str, *, voice: str) -> tuple[bytes, str]:
        """Fetch an audio file for ``text``; returns (bytes, suggested filename)."""
        try:
            response = await self._client.post("/api/download-audio", json={"text": text, "voice": voice})
        except httpx.HTTPError as exc:
            raise SynthesisError(f"Download failed: {exc}") from exc
        if response.is_error:
            raise SynthesisError(
                self._error_message(response, f"Download failed: {response.status_code}"),
                status_code=response.status_code,
            )
        filename = _attachment_filename(response.headers.get("content-disposition")) or "therapist-response.wav"
        return response.content, filename

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    async def _get(self, path: str) -> httpx.Response:
        try:
            response = await self._client.get(path)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise VoiceClientError(f"GET {path} failed: {exc}") from exc
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise VoiceClientError(f"Non-JSON response: {response.text[:200]}") from exc

    @staticmethod
    def _error_message(response: httpx.Response, fallback: str) -> str:
        try:
            data = response.json()
        except ValueError:
            return fallback
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, str) and error:
                return error
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return fallback


def _attachment_filename(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    for part in header.split(";"):
        name, _, value = part.strip().partition("=")
        if name.lower() == "filename" and value:
            return value.strip().strip('"')
    return None
