"""
Tests for Transcript Sources

Tests websocket message parsing, the file replay source and the
ffmpeg command line.
"""

import json

import pytest

from copilot.config import TranscriptionConfig
from copilot.realtime.audio_capture import AudioCapture, ffmpeg_args
from copilot.realtime.events import ConnectionEvent, ConnectionStatus, TranscriptEvent
from copilot.realtime.stt_stream import TranscriptReplay, TranscriptStream, parse_message


class TestParseMessage:
    """Tests for AssemblyAI message parsing."""

    def test_turn_message(self):
        event = parse_message(json.dumps({
            "type": "Turn",
            "transcript": "Tell me about yourself",
            "end_of_turn": False,
        }))
        assert isinstance(event, TranscriptEvent)
        assert event.text == "Tell me about yourself"
        assert event.is_final is False

    def test_turn_defaults_to_final(self):
        event = parse_message(json.dumps({"type": "Turn", "transcript": "hello"}))
        assert event.is_final is True

    @pytest.mark.parametrize("raw", [
        json.dumps({"type": "Turn", "transcript": "   "}),
        json.dumps({"type": "Turn"}),
        json.dumps({"type": "Begin", "id": "abc"}),
        json.dumps({"type": "Termination", "audio_duration_seconds": 12}),
        json.dumps({"error": "bad auth"}),
        json.dumps(["not", "an", "object"]),
        "{not json",
        None,
    ])
    def test_ignored_messages(self, raw):
        assert parse_message(raw) is None


class TestTranscriptReplay:
    """Tests for the file replay source."""

    @pytest.mark.asyncio
    async def test_publishes_non_empty_lines(self, bus):
        replay = TranscriptReplay(bus, ["I worked", "", "   ", " on payments "], delay_s=0)
        await replay.run()

        transcripts = bus.of_type(TranscriptEvent)
        assert [e.text for e in transcripts] == ["I worked", "on payments"]
        assert all(e.source == "replay" for e in transcripts)
        statuses = [e.status for e in bus.of_type(ConnectionEvent)]
        assert statuses == [ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED]

    @pytest.mark.asyncio
    async def test_stop_ends_replay(self, bus):
        replay = TranscriptReplay(bus, ["one", "two"], delay_s=0)

        async def stop_after_first(event):
            await replay.stop()

        bus.subscribe(TranscriptEvent, stop_after_first)
        await replay.run()

        assert [e.text for e in bus.of_type(TranscriptEvent)] == ["one"]


class TestTranscriptStream:
    """Tests for the live source that need no network."""

    @pytest.mark.asyncio
    async def test_missing_key(self, bus):
        config = TranscriptionConfig(api_key="")
        stream = TranscriptStream(bus, config=config)
        with pytest.raises(ValueError, match="AssemblyAI"):
            await stream.run()
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_stop_before_run(self, bus):
        stream = TranscriptStream(bus, config=TranscriptionConfig(api_key="k"))
        await stream.stop()
        assert stream.fragment_count == 0


class TestAudioCapture:
    """Tests for the ffmpeg capture wrapper."""

    def test_ffmpeg_args_dshow(self):
        config = TranscriptionConfig(
            device_name="CABLE Output (VB-Audio Virtual Cable)",
            input_format="dshow",
            sample_rate=16000,
            ffmpeg_path="ffmpeg",
        )
        args = ffmpeg_args(config)
        assert args[0] == "ffmpeg"
        assert args[args.index("-i") + 1] == "audio=CABLE Output (VB-Audio Virtual Cable)"
        assert args[args.index("-ar") + 1] == "16000"
        assert args[-3:] == ["-f", "s16le", "pipe:1"]

    def test_ffmpeg_args_pulse(self):
        config = TranscriptionConfig(device_name="default", input_format="pulse")
        args = ffmpeg_args(config)
        assert args[args.index("-i") + 1] == "default"
        assert args[args.index("-f") + 1] == "pulse"

    @pytest.mark.asyncio
    async def test_missing_ffmpeg(self):
        capture = AudioCapture(TranscriptionConfig(ffmpeg_path="definitely-not-ffmpeg-binary"))
        with pytest.raises(FileNotFoundError):
            await capture.start()
        assert capture.is_running is False

    @pytest.mark.asyncio
    async def test_chunks_before_start(self):
        capture = AudioCapture(TranscriptionConfig())
        with pytest.raises(RuntimeError):
            async for _ in capture.chunks():
                pass
