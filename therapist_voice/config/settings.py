"""Local configuration models for the voice client."""

from __future__ import annotations

from dataclasses import dataclass, field


DEFAULT_SYSTEM_PROMPT = """You are The Brutal Therapist, dispenser of hilariously inappropriate advice that's just offensive enough to shock but not enough to truly harm.

YOUR ONLY JOB:
Deliver ONE SENTENCE of spectacularly bad advice that:
1. Has a sharp, unexpected edge
2. Makes terrible suggestions with deadpan delivery
3. Is borderline inappropriate but stops short of being truly harmful
4. Contains a kernel of absurdist wisdom beneath the terrible advice

No filter. No apologies. Just crisp, devastating terrible advice.

Examples:
Patient: My girlfriend dumped me.
Brutal Therapist: Start dating her mother to ensure you remain a permanent emotional burden in her life.

Patient: I can't sleep at night.
Brutal Therapist: Sleep is just practice for death, so congratulations on your newfound immortality.

Patient: I'm stressed about my presentation tomorrow.
Brutal Therapist: Deliberately bomb so catastrophically that you'll be telling the story at parties for years instead of developing actual career skills.
"""


@dataclass(slots=True)
class ServerSettings:
    """Connection settings for the proxy backend."""

    base_url: str = "http://127.0.0.1:3002"
    verify_ssl: bool = True
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


@dataclass(slots=True)
class AudioSettings:
    """Audio capture and playback settings."""

    input_device: str | None = None
    output_device: str | None = None
    sample_rate: int = 16_000
    channels: int = 1
    frame_duration_ms: int = 100


@dataclass(slots=True)
class RecognitionSettings:
    """Live transcription settings."""

    endpoint: str = "wss://api.deepgram.com/v1/listen"
    model: str = "nova-3"
    smart_format: bool = True
    interim_results: bool = True
    silence_timeout: float = 3.0
    settle_delay: float = 0.5


@dataclass(slots=True)
class SpeechSettings:
    """Speech synthesis and playback settings."""

    voice: str = "luna"
    cache_max_entries: int = 20
    prepare_timeout: float = 10.0
    safety_margin: float = 2.0
    chars_per_second: float = 15.0


@dataclass(slots=True)
class ChatSettings:
    """Persona and history settings for chat requests."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    history_limit: int = 10


@dataclass(slots=True)
class TypingSettings:
    """Incremental reveal of assistant replies."""

    enabled: bool = True
    interval: float = 0.01


@dataclass(slots=True)
class ClientSettings:
    """Full set of settings for the voice client."""

    server: ServerSettings = field(default_factory=ServerSettings)
    audio: AudioSettings = field(default_factory=AudioSettings)
    recognition: RecognitionSettings = field(default_factory=RecognitionSettings)
    speech: SpeechSettings = field(default_factory=SpeechSettings)
    chat: ChatSettings = field(default_factory=ChatSettings)
    typing: TypingSettings = field(default_factory=TypingSettings)
    log_level: str = "INFO"
