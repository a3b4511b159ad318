"""Orchestrates listening, chat replies, speech playback and reveal."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from ..config.settings import TypingSettings
from ..services.chat import ChatClient
from ..services.errors import MissingCredentialsError, VoiceClientError
from ..services.schemas import Credentials, Message, PlaybackResult
from ..state.app_state import ConversationState
from .recognition import SpeechRecognizer
from .reveal import TypingReveal
from .synthesizer import SpeechSynthesizer

LOGGER = logging.getLogger(__name__)

AlertCallback = Callable[[str], None]
StateCallback = Callable[[ConversationState], None]


class ConversationCoordinator:
    """High-level coordinator for one conversation session.

    Owns the message list. Turns go listen -> transcribe -> request reply ->
    speak reply (with a typing reveal once audio starts). Every entry point
    settles into a defined state; failures surface through ``on_alert``.
    """

    def __init__(
        self,
        chat: ChatClient,
        synthesizer: SpeechSynthesizer,
        recognizer: Optional[SpeechRecognizer] = None,
        *,
        credentials: Credentials,
        typing: TypingSettings | None = None,
        on_alert: Optional[AlertCallback] = None,
        on_change: Optional[StateCallback] = None,
    ) -> None:
        self.chat = chat
        self.synthesizer = synthesizer
        self.recognizer = recognizer
        self.credentials = credentials
        self.typing = typing or TypingSettings()
        self.on_alert = on_alert
        self.on_change = on_change

        self._messages: list[Message] = []
        self._transcript = ""
        self._processing = False
        self._playing_index: Optional[int] = None
        self._pending_reveal: Optional[int] = None
        self._generation = 0
        self._tasks: set[asyncio.Task[Any]] = set()

        self.reveal = TypingReveal(self.typing.interval, on_update=self._handle_reveal_update)
        self.synthesizer.set_state_callback(self._handle_speaking_change)
        self.synthesizer.set_playback_started_callback(self._handle_playback_started)
        if recognizer is not None:
            recognizer.on_transcript = self._handle_transcript
            recognizer.on_complete = self._handle_transcription_complete
            recognizer.on_listening_change = self._handle_listening_change

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def current_transcript(self) -> str:
        return self._transcript

    @property
    def is_listening(self) -> bool:
        return self.recognizer is not None and self.recognizer.is_listening

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_speaking(self) -> bool:
        return self.synthesizer.is_speaking

    @property
    def active_playing_index(self) -> Optional[int]:
        """Index of the message whose audio is playing, or None."""
        if not self.synthesizer.is_speaking:
            return None
        return self._playing_index

    def snapshot(self) -> ConversationState:
        """Return the render-facing state."""
        return ConversationState(
            messages=self.messages,
            current_transcript=self._transcript,
            is_listening=self.is_listening,
            is_processing=self._processing,
            is_speaking=self.is_speaking,
            active_playing_index=self.active_playing_index,
            typing_index=self.reveal.index,
            currently_typing=self.reveal.visible,
        )

    # ------------------------------------------------------------------ #
    # Listening
    # ------------------------------------------------------------------ #
    async def start_listening(self) -> bool:
        """Start capturing speech; interrupts any reply being spoken."""
        if self.recognizer is None:
            LOGGER.error("No speech recognizer configured.")
            return False
        if self.recognizer.is_listening:
            return True
        if self._processing or self.recognizer.is_settling:
            LOGGER.info("Ignoring start_listening while a transcript is being handled.")
            return False
        if self.synthesizer.is_busy:
            self.stop_speaking()
        self._transcript = ""
        started = await self.recognizer.start_listening()
        self._notify()
        return started

    def stop_listening(self) -> None:
        """Stop capturing; a non-empty transcript is then processed."""
        if self.recognizer is None:
            return
        self.recognizer.stop_listening()
        self._notify()

    # ------------------------------------------------------------------ #
    # Turns
    # ------------------------------------------------------------------ #
    async def process_transcript(self, text: str) -> bool:
        """Send ``text`` as the user turn, then append and speak the reply.

        Returns True when a reply was appended. Overlapping calls are rejected
        with an alert rather than queued.
        """
        text = text.strip()
        if not text:
            self._alert("Please say something first!")
            return False
        if not self.credentials.claude_api_key:
            self._alert("Please enter your Claude API key")
            return False
        if self._processing:
            self._alert("Still waiting on the previous reply, try again in a moment.")
            return False
        if self.is_listening:
            self._alert("Stop listening before sending.")
            return False

        generation = self._generation
        history = list(self._messages)
        self._processing = True
        self._messages.append(Message(role="user", content=text))
        self._notify()
        try:
            reply = await self.chat.send_message(text, history, self.credentials.claude_api_key)
        except MissingCredentialsError as exc:
            if generation == self._generation:
                self._alert(str(exc))
            return False
        except VoiceClientError as exc:
            LOGGER.error("Error getting AI response: %s", exc)
            if generation == self._generation:
                self._alert(f"Failed to get AI response: {exc}")
            return False
        finally:
            if generation == self._generation:
                self._processing = False
                self._notify()

        if generation != self._generation:
            LOGGER.info("Conversation was reset while waiting, dropping the reply.")
            return False

        self._messages.append(Message(role="assistant", content=reply))
        index = len(self._messages) - 1
        if self.typing.enabled:
            self._pending_reveal = index
        self._notify()
        await self._speak(index, interrupt=True)
        return True

    async def speak_message(self, index: int) -> bool:
        """Replay the audio of an assistant message."""
        if not 0 <= index < len(self._messages) or self._messages[index].role != "assistant":
            LOGGER.info("No assistant message at index %s.", index)
            return False
        if self.synthesizer.is_busy:
            LOGGER.info("Rejecting replay while another message is playing.")
            return False
        return await self._speak(index, interrupt=False)

    def stop_speaking(self) -> None:
        """Halt playback; the message stays in history."""
        if not self.synthesizer.is_busy and not self.synthesizer.is_speaking:
            return
        self.synthesizer.stop()
        self._pending_reveal = None
        self.reveal.finish()
        self._notify()

    def clear_conversation(self) -> None:
        """Hard reset to an empty, idle conversation."""
        self._generation += 1
        if self.recognizer is not None:
            self.recognizer.cancel()
        self.synthesizer.stop()
        self.reveal.cancel()
        self._messages.clear()
        self._transcript = ""
        self._processing = False
        self._playing_index = None
        self._pending_reveal = None
        self._notify()

    def select_voice(self, voice_id: str) -> bool:
        """Switch the synthesis voice between utterances."""
        if self._processing or self.synthesizer.is_busy:
            LOGGER.info("Voice selection is disabled while busy.")
            return False
        self.synthesizer.voice_id = voice_id
        self._notify()
        return True

    async def wait_for_pending(self) -> None:
        """Wait for transcripts handed over by the recognizer to be processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Release capture and playback and finish pending work."""
        self.clear_conversation()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _speak(self, index: int, *, interrupt: bool) -> bool:
        if self.synthesizer.is_busy:
            if not interrupt:
                return False
            self.synthesizer.stop()
            self.reveal.cancel()
        generation = self._generation
        self._playing_index = index
        result: Optional[PlaybackResult] = None
        try:
            result = await self.synthesizer.speak(self._messages[index].content)
        except VoiceClientError as exc:
            LOGGER.error("Audio playback failed: %s", exc)
            self._alert(f"Audio playback failed: {exc}")
        finally:
            if generation == self._generation and self._playing_index == index:
                self._playing_index = None
            if self._pending_reveal == index:
                self._pending_reveal = None
            self._notify()
        return result in (PlaybackResult.FINISHED, PlaybackResult.TIMED_OUT)

    def _handle_transcript(self, text: str) -> None:
        self._transcript = text
        self._notify()

    def _handle_transcription_complete(self, text: str) -> None:
        self._transcript = ""
        if self.recognizer is not None:
            self.recognizer.clear_transcript()
        task = asyncio.create_task(self.process_transcript(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _handle_listening_change(self, listening: bool) -> None:
        self._notify()

    def _handle_speaking_change(self, speaking: bool) -> None:
        self._notify()

    def _handle_playback_started(self) -> None:
        index = self._pending_reveal
        if index is None or index != self._playing_index:
            return
        self._pending_reveal = None
        self.reveal.start(index, self._messages[index].content)

    def _handle_reveal_update(self, index: Optional[int], visible: str) -> None:
        self._notify()

    def _alert(self, message: str) -> None:
        LOGGER.warning("Alert: %s", message)
        if self.on_alert is not None:
            self.on_alert(message)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.snapshot())
