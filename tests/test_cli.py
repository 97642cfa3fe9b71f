"""
Tests for the Command Line Interface

Tests argument parsing, the classify command and the console sink.
"""

import io
import json

import pytest

from copilot.cli import ConsolePrinter, _pipeline_config, cmd_classify, create_parser, main
from copilot.realtime.events import (
    ConnectionEvent,
    ConnectionStatus,
    ErrorEvent,
    ModeChangeEvent,
    ResponseEvent,
    TranscriptEvent,
)
from copilot.realtime.session import Mode

from tests.conftest import RecordingBus


class TestParser:
    """Tests for argument parsing."""

    def test_replay_arguments(self):
        parser = create_parser()
        args = parser.parse_args(["replay", "talk.txt", "--delay", "0.1", "--mode", "code", "--tick", "0.5"])
        assert args.command == "replay"
        assert args.file == "talk.txt"
        assert args.delay == 0.1
        assert args.mode == "code"
        assert args.tick == 0.5

    def test_invalid_mode_rejected(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["replay", "talk.txt", "--mode", "debug"])

    def test_pipeline_overrides(self):
        args = create_parser().parse_args(["replay", "talk.txt", "--tick", "0.25", "--min-interval", "0"])
        config = _pipeline_config(args)
        assert config.tick_interval_s == 0.25
        assert config.min_interval_s == 0.0

    def test_no_command_prints_help(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.argv", ["interview-copilot"])
        assert main() == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestClassifyCommand:
    """Tests for the classify command."""

    def test_technical(self, capsys):
        args = create_parser().parse_args(["classify", "write a function to reverse a string"])
        assert cmd_classify(args) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["intent"] == "technical"
        assert data["is_code_question"] is True

    def test_qa_flag_skips_technical(self, capsys):
        args = create_parser().parse_args(["classify", "write a function to reverse a string", "--qa"])
        cmd_classify(args)
        data = json.loads(capsys.readouterr().out)
        assert data["intent"] == "general"

    def test_output_eval(self, capsys):
        args = create_parser().parse_args(["classify", "console.log(1+1)"])
        cmd_classify(args)
        data = json.loads(capsys.readouterr().out)
        assert data["intent"] == "output_eval"
        assert data["language"] == "JavaScript"
        assert data["is_log_intent"] is True


class TestReplayCommand:
    """Tests for replay argument checks."""

    def test_missing_file(self, capsys):
        args = create_parser().parse_args(["replay", "does-not-exist.txt"])
        assert args.func(args) == 1
        assert "File not found" in capsys.readouterr().out


class TestConsolePrinter:
    """Tests for the console sink."""

    @pytest.mark.asyncio
    async def test_prints_events(self):
        out = io.StringIO()
        bus = RecordingBus()
        ConsolePrinter(stream=out).attach(bus)

        await bus.publish(TranscriptEvent(text="Tell me about yourself"))
        await bus.publish(ModeChangeEvent(mode=Mode.QA))
        await bus.publish(ErrorEvent(message="Gemini interview error: HTTP 500"))
        await bus.publish(ConnectionEvent(status=ConnectionStatus.CONNECTED))

        text = out.getvalue()
        assert "🎧 Tell me about yourself" in text
        assert "Mode: QA (code)" in text
        assert "⚠️  Gemini interview error: HTTP 500" in text
        assert "📡 Status: connected, listening..." in text

    @pytest.mark.asyncio
    async def test_connection_statuses(self):
        out = io.StringIO()
        printer = ConsolePrinter(stream=out)

        await printer.handle(ConnectionEvent(status=ConnectionStatus.DISCONNECTED))
        await printer.handle(ConnectionEvent(status=ConnectionStatus.ERROR, detail="auth failed"))

        lines = out.getvalue().splitlines()
        assert "📡 Status: disconnected" in lines
        assert "📡 Status: error (auth failed)" in lines

    @pytest.mark.asyncio
    async def test_code_response(self):
        out = io.StringIO()
        printer = ConsolePrinter(stream=out)

        await printer.handle(ResponseEvent(
            text="Use slicing.\n```python\nprint('x'[::-1])\n```",
            mode=Mode.INTERVIEW,
            intent="technical",
            language="Python",
            utterance="reverse a string",
            explanation="Use slicing.",
            code="print('x'[::-1])\n",
        ))

        text = out.getvalue()
        assert "[interview | technical] reverse a string" in text
        assert "```python\nprint('x'[::-1])\n```" in text

    @pytest.mark.asyncio
    async def test_captions_hidden(self):
        out = io.StringIO()
        printer = ConsolePrinter(show_captions=False, stream=out)
        await printer.handle(TranscriptEvent(text="hidden"))
        assert out.getvalue() == ""
