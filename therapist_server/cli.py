from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from therapist_server.core.config import Settings, get_settings

cli = typer.Typer(name="therapist", help="Brutal therapist voice proxy")
config_cli = typer.Typer(help="Configuration")

cli.add_typer(config_cli, name="config")


@cli.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
) -> None:
    """Start the FastAPI proxy."""
    settings = get_settings()
    uvicorn.run("therapist_server.main:app", host=host or settings.host, port=port or settings.port)


@cli.command()
def talk() -> None:
    """Start the console voice client against the configured proxy."""
    from therapist_voice import run

    run()


@cli.command()
def voices() -> None:
    """List the voices offered by the proxy."""
    for voice in get_settings().voices:
        typer.echo(f"{voice.id}\t{voice.name}\t{voice.model}")


@cli.command()
def download(
    text: str,
    voice: Optional[str] = typer.Option(None, "--voice", help="Voice id (defaults to the first one)"),
    output: Path = typer.Option(Path("therapist-response.wav"), "--output", "-o"),
) -> None:
    """Synthesize TEXT with Deepgram and write it as a WAV file."""
    from therapist_server.core.deepgram import DeepgramSpeech
    from therapist_server.core.errors import ProviderError

    settings = get_settings()
    if not settings.deepgram_api_key:
        typer.echo("deepgram_api_key is not configured.")
        raise typer.Exit(code=1)
    speech = DeepgramSpeech(settings)
    try:
        audio = asyncio.run(speech.speak(settings.deepgram_api_key, text, settings.find_voice(voice)))
    except ProviderError as exc:
        typer.echo(f"Failed to generate speech: {exc.message}")
        raise typer.Exit(code=1) from exc
    output.write_bytes(audio)
    typer.echo(str(output))


@config_cli.command("print")
def config_print():
    s = Settings()
    data = s.model_dump()
    for key in ("deepgram_api_key", "claude_api_key"):
        if data.get(key):
            data[key] = "***"
    typer.echo(json.dumps(data, ensure_ascii=False, default=str))


@config_cli.command("edit")
def config_edit():
    path = Path(__file__).resolve().parents[1] / "config.json"
    if not path.exists():
        path.write_text("{}", encoding="utf-8")
    typer.echo(str(path))


if __name__ == "__main__":
    cli()
