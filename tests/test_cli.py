from __future__ import annotations

import json

from typer.testing import CliRunner

from jarvis_voice import cli as cli_module
from jarvis_voice.core.errors import SpeechOutputError, TransportError
from jarvis_voice.services.schemas import CommandReply


runner = CliRunner()


class StubDispatcher:
    reply = CommandReply(response="Lights are on.")
    error: Exception | None = None
    sent: list[str] = []
    closed = False

    def __init__(self, settings) -> None:
        self.settings = settings

    async def send(self, command: str) -> CommandReply:
        StubDispatcher.sent.append(command)
        if StubDispatcher.error is not None:
            raise StubDispatcher.error
        return StubDispatcher.reply

    async def close(self) -> None:
        StubDispatcher.closed = True


class StubSpeech:
    fail = False
    spoken: list[str] = []

    def __init__(self, settings) -> None:
        self._callback = None

    def bind_errors(self, callback) -> None:
        self._callback = callback

    def speak(self, text: str) -> None:
        StubSpeech.spoken.append(text)
        if StubSpeech.fail:
            self._callback(SpeechOutputError("no voice model"))

    def wait(self, timeout=None) -> bool:
        return True

    def shutdown(self) -> None:
        pass


def _reset_stubs(monkeypatch) -> None:
    monkeypatch.setattr(StubDispatcher, "reply", CommandReply(response="Lights are on."))
    monkeypatch.setattr(StubDispatcher, "error", None)
    monkeypatch.setattr(StubDispatcher, "sent", [])
    monkeypatch.setattr(StubDispatcher, "closed", False)
    monkeypatch.setattr(StubSpeech, "fail", False)
    monkeypatch.setattr(StubSpeech, "spoken", [])
    monkeypatch.setattr(cli_module, "CommandDispatcher", StubDispatcher)
    monkeypatch.setattr(cli_module, "SpeechOutput", StubSpeech)


def test_cli_help():
    result = runner.invoke(cli_module.cli, ["--help"])
    assert result.exit_code == 0
    for command in ("run", "listen", "ask", "say", "devices", "config"):
        assert command in result.output


def test_cli_config_prints_effective_settings(monkeypatch):
    monkeypatch.setenv("JARVIS_ASSISTANT_NAME", "Friday")
    result = runner.invoke(cli_module.cli, ["config"])
    assert result.exit_code == 0
    assert json.loads(result.output)["assistant_name"] == "Friday"


def test_cli_ask_prints_reply(monkeypatch):
    _reset_stubs(monkeypatch)
    result = runner.invoke(cli_module.cli, ["ask", "  turn on the lights "])
    assert result.exit_code == 0
    assert "Jarvis: Lights are on." in result.output
    assert StubDispatcher.sent == ["turn on the lights"]
    assert StubDispatcher.closed


def test_cli_ask_without_response(monkeypatch):
    _reset_stubs(monkeypatch)
    monkeypatch.setattr(StubDispatcher, "reply", CommandReply(response=None))
    result = runner.invoke(cli_module.cli, ["ask", "hello"])
    assert result.exit_code == 0
    assert "(no response)" in result.output


def test_cli_ask_reports_dispatch_failure(monkeypatch):
    _reset_stubs(monkeypatch)
    monkeypatch.setattr(StubDispatcher, "error", TransportError("Command endpoint returned HTTP 500", status_code=500))
    result = runner.invoke(cli_module.cli, ["ask", "unknown"])
    assert result.exit_code == 1
    assert StubDispatcher.closed


def test_cli_say(monkeypatch):
    _reset_stubs(monkeypatch)
    result = runner.invoke(cli_module.cli, ["say", "Hello there"])
    assert result.exit_code == 0
    assert StubSpeech.spoken == ["Hello there"]


def test_cli_say_reports_failure(monkeypatch):
    _reset_stubs(monkeypatch)
    monkeypatch.setattr(StubSpeech, "fail", True)
    result = runner.invoke(cli_module.cli, ["say", "Hello there"])
    assert result.exit_code == 1
