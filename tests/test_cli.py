from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from therapist_server import cli as cli_module
from therapist_server.core.config import Settings


runner = CliRunner()


def test_cli_help():
    result = runner.invoke(cli_module.cli, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output and "talk" in result.output


def test_cli_lists_voices():
    result = runner.invoke(cli_module.cli, ["voices"])
    assert result.exit_code == 0
    assert "luna\tLuna (Female US)\taura-luna-en" in result.output


def test_cli_config_print_masks_keys(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "sk-secret")
    result = runner.invoke(cli_module.cli, ["config", "print"])
    assert result.exit_code == 0
    assert "sk-secret" not in result.output
    assert '"port": 3002' in result.output


def test_cli_download_writes_wav(monkeypatch, tmp_path: Path):
    async def fake_speak(self, api_key, text, voice):
        assert api_key == "dg"
        return b"RIFFdata"

    monkeypatch.setattr(cli_module, "get_settings", lambda: Settings(deepgram_api_key="dg"))
    monkeypatch.setattr("therapist_server.core.deepgram.DeepgramSpeech.speak", fake_speak)
    target = tmp_path / "out.wav"
    result = runner.invoke(cli_module.cli, ["download", "Hello", "--voice", "zeus", "-o", str(target)])
    assert result.exit_code == 0
    assert target.read_bytes() == b"RIFFdata"


def test_cli_download_needs_key(monkeypatch):
    monkeypatch.setattr(cli_module, "get_settings", lambda: Settings(deepgram_api_key=None))
    result = runner.invoke(cli_module.cli, ["download", "Hello"])
    assert result.exit_code == 1
