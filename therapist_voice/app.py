"""Console entry point for the voice client."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from .audio.capture import CaptureConfig, MicrophoneCapture
from .audio.playback import PlaybackConfig, SpeechPlayback
from .config.paths import download_path
from .config.settings import ClientSettings
from .config.store import load_settings
from .runtime.coordinator import ConversationCoordinator
from .runtime.recognition import SpeechRecognizer
from .runtime.synthesizer import SpeechSynthesizer
from .services.api import ProxyAPI
from .services.chat import ChatClient
from .services.errors import VoiceClientError
from .services.schemas import Credentials, VoiceModel
from .services.transcription import DeepgramTranscriber
from .state.app_state import ConversationState

LOGGER = logging.getLogger(__name__)

HELP_TEXT = "[Enter] talk/stop  s stop speaking  r <n> replay  d <n> download  v <id> voice  c clear  q quit"


class ConsoleRenderer:
    """Print conversation changes as they happen."""

    def __init__(self) -> None:
        self._printed = 0
        self._listening = False
        self._thinking = False

    def alert(self, message: str) -> None:
        typer.secho(f"! {message}", fg=typer.colors.RED)

    def render(self, state: ConversationState) -> None:
        if state.is_listening != self._listening:
            self._listening = state.is_listening
            typer.secho("Listening..." if state.is_listening else "Stopped listening.", fg=typer.colors.CYAN)
        if len(state.messages) < self._printed:
            self._printed = 0
            typer.echo("(conversation cleared)")
        while self._printed < len(state.messages):
            message = state.messages[self._printed]
            label = "You" if message.role == "user" else "Therapist"
            typer.echo(f"[{self._printed}] {label}: {message.content}")
            self._printed += 1
        thinking = bool(state.display_messages) and state.display_messages[-1].is_thinking
        if thinking and not self._thinking:
            typer.secho("Therapist is thinking...", fg=typer.colors.YELLOW)
        self._thinking = thinking


async def resolve_credentials(api: ProxyAPI) -> Credentials:
    """Use the proxy keys when both are provided, otherwise ask for them."""
    try:
        credentials = await api.fetch_keys()
    except VoiceClientError as exc:
        LOGGER.error("Error loading API keys: %s", exc)
        credentials = Credentials()
    if credentials.complete:
        LOGGER.info("API keys loaded from server environment.")
        return credentials
    while not credentials.complete:
        credentials.deepgram_api_key = typer.prompt("Deepgram API key", hide_input=True, default="", show_default=False)
        credentials.claude_api_key = typer.prompt("Claude API key", hide_input=True, default="", show_default=False)
        if not credentials.complete:
            typer.secho("Please enter both API keys", fg=typer.colors.RED)
    return credentials


async def download_message(api: ProxyAPI, coordinator: ConversationCoordinator, index: int) -> None:
    """Save the audio of an assistant message under the downloads folder."""
    messages = coordinator.messages
    if not 0 <= index < len(messages) or messages[index].role != "assistant":
        typer.echo(f"No therapist message at index {index}.")
        return
    try:
        data, filename = await api.download_audio(messages[index].content, voice=coordinator.synthesizer.voice_id)
    except VoiceClientError as exc:
        LOGGER.error("Error downloading audio: %s", exc)
        typer.secho(f"! Failed to download audio: {exc}", fg=typer.colors.RED)
        return
    target = download_path(filename, index)
    target.write_bytes(data)
    typer.echo(f"Saved {target}")


async def load_voices(api: ProxyAPI) -> list[VoiceModel]:
    try:
        return await api.fetch_voices()
    except VoiceClientError as exc:
        LOGGER.error("Failed to load voices: %s", exc)
        return []


def build_coordinator(
    settings: ClientSettings,
    api: ProxyAPI,
    credentials: Credentials,
    renderer: ConsoleRenderer,
) -> ConversationCoordinator:
    """Wire capture, transcription, chat and synthesis into a coordinator."""
    microphone = MicrophoneCapture(
        CaptureConfig(
            sample_rate=settings.audio.sample_rate,
            channels=settings.audio.channels,
            frame_duration_ms=settings.audio.frame_duration_ms,
            device_name=settings.audio.input_device,
        )
    )
    recognizer = SpeechRecognizer(
        DeepgramTranscriber(credentials.deepgram_api_key, settings.recognition, settings.audio),
        microphone,
        silence_timeout=settings.recognition.silence_timeout,
        settle_delay=settings.recognition.settle_delay,
    )
    synthesizer = SpeechSynthesizer(
        api,
        SpeechPlayback(PlaybackConfig(device_name=settings.audio.output_device)),
        api_key=credentials.deepgram_api_key,
        voice_id=settings.speech.voice,
        settings=settings.speech,
    )
    chat = ChatClient(api, system_prompt=settings.chat.system_prompt, history_limit=settings.chat.history_limit)
    return ConversationCoordinator(
        chat,
        synthesizer,
        recognizer,
        credentials=credentials,
        typing=settings.typing,
        on_alert=renderer.alert,
        on_change=renderer.render,
    )


async def run_session(settings: ClientSettings) -> None:
    """Run an interactive console conversation until the user quits."""
    api = ProxyAPI(settings)
    renderer = ConsoleRenderer()
    coordinator: Optional[ConversationCoordinator] = None
    replays: set[asyncio.Task[bool]] = set()
    loop = asyncio.get_running_loop()
    try:
        credentials = await resolve_credentials(api)
        voices = await load_voices(api)
        if voices:
            typer.echo("Voices: " + ", ".join(f"{voice.id} ({voice.name})" for voice in voices))
        coordinator = build_coordinator(settings, api, credentials, renderer)
        typer.echo("How can the therapist help you today?")
        typer.echo(HELP_TEXT)
        while True:
            line = (await loop.run_in_executor(None, input)).strip()
            command, _, argument = line.partition(" ")
            if command == "q":
                break
            if command == "":
                if coordinator.is_listening:
                    coordinator.stop_listening()
                else:
                    await coordinator.start_listening()
            elif command == "s":
                coordinator.stop_speaking()
            elif command == "c":
                coordinator.clear_conversation()
            elif command == "r" and argument.isdigit():
                task = asyncio.create_task(coordinator.speak_message(int(argument)))
                replays.add(task)
                task.add_done_callback(replays.discard)
            elif command == "d" and argument.isdigit():
                await download_message(api, coordinator, int(argument))
            elif command == "v" and argument:
                if argument not in {voice.id for voice in voices} and voices:
                    renderer.alert(f"Unknown voice: {argument}")
                elif not coordinator.select_voice(argument):
                    renderer.alert("Voice can't be changed while the therapist is busy.")
            else:
                typer.echo(HELP_TEXT)
    except EOFError:
        pass
    finally:
        if coordinator is not None:
            await coordinator.shutdown()
        await api.close()


def run(settings: Optional[ClientSettings] = None) -> None:
    """Start the console voice client."""
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_session(settings))
