#!/usr/bin/env python3
"""
Interview Copilot - Command Line Interface

Commands:
    live        - Capture audio, transcribe and answer in real time
    replay      - Feed a transcript file through the pipeline
    ask         - Ask a single typed question (QA history)
    classify    - Show how a piece of text is classified
    test        - Check configuration and connectivity

Usage:
    python -m copilot.cli live --device "CABLE Output (VB-Audio Virtual Cable)"
    python -m copilot.cli replay samples/interview.txt --delay 0.3
    python -m copilot.cli ask "what does console.log(typeof null) print?"
    python -m copilot.cli classify "write a function to reverse a string"
    python -m copilot.cli test

For help on a specific command:
    python -m copilot.cli <command> --help
"""

import argparse
import asyncio
import json
import sys
import time
from dataclasses import replace
from pathlib import Path

from copilot.config import settings
from copilot.logger import get_logger, init_logging
from copilot.messages import mode_label, msg

# Initialize logging
init_logging()
logger = get_logger(__name__)


class ConsolePrinter:
    """Presentation sink that prints pipeline events to stdout."""

    def __init__(self, show_captions: bool = True, stream=None):
        self._show_captions = show_captions
        self._stream = stream or sys.stdout

    def attach(self, event_bus) -> None:
        from copilot.realtime.events import Event
        event_bus.subscribe(Event, self.handle)

    def _print(self, text: str = "") -> None:
        print(text, file=self._stream, flush=True)

    async def handle(self, event) -> None:
        from copilot.realtime.events import (
            ConnectionEvent,
            ConnectionStatus,
            ErrorEvent,
            ModeChangeEvent,
            ResponseEvent,
            TranscriptEvent,
        )

        if isinstance(event, TranscriptEvent):
            if self._show_captions:
                self._print(f"🎧 {event.text}")
        elif isinstance(event, ModeChangeEvent):
            self._print(f"\n🔀 {mode_label(event.mode.value)}")
        elif isinstance(event, ResponseEvent):
            self._print("\n" + "-" * 60)
            self._print(f"💬 [{event.mode.value} | {event.intent}] {event.utterance}")
            if event.has_code:
                if event.explanation:
                    self._print(f"\n{event.explanation}")
                self._print(f"\n```{event.language.lower()}\n{event.code.rstrip()}\n```")
            else:
                self._print(f"\n{event.text}")
            self._print("-" * 60)
        elif isinstance(event, ErrorEvent):
            self._print(f"⚠️  {event.message}")
        elif isinstance(event, ConnectionEvent):
            if event.status is ConnectionStatus.CONNECTED:
                self._print(f"📡 {msg('status.connected')}")
            elif event.status is ConnectionStatus.DISCONNECTED:
                self._print(f"📡 {msg('status.disconnected')}")
            else:
                detail = f" ({event.detail})" if event.detail else ""
                self._print(f"📡 Status: {event.status.value}{detail}")


def _pipeline_config(args: argparse.Namespace):
    """Apply per-run overrides to the pipeline settings."""
    config = settings.pipeline
    overrides = {}
    if getattr(args, "tick", None):
        overrides["tick_interval_s"] = args.tick
    if getattr(args, "min_interval", None) is not None:
        overrides["min_interval_s"] = args.min_interval
    return replace(config, **overrides) if overrides else config


def _gateway(args: argparse.Namespace):
    from copilot.realtime.gateway import GeminiGateway
    key = getattr(args, "gemini_key", None) or settings.gemini.api_key
    if not key:
        print(f"❌ {msg('error.gemini_key_missing')}")
        return None
    return GeminiGateway(api_key=key)


async def _wait_until_settled(controller, min_chars: int, timeout: float) -> None:
    """Wait for pending text to be dispatched and answered."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        session = controller.session
        if session is None:
            return
        in_flight = session.gate.is_processing or controller.scheduler.slot_busy
        if not in_flight and len(session.buffer) < min_chars:
            return
        await asyncio.sleep(0.1)
    logger.warning("Timed out waiting for the last answer")


def cmd_live(args: argparse.Namespace) -> int:
    """
    Capture audio with ffmpeg, stream it to AssemblyAI and answer live.
    """
    from copilot.realtime.controller import CopilotController
    from copilot.realtime.stt_stream import TranscriptStream

    assembly_key = args.assembly_key or settings.transcription.api_key
    if not assembly_key:
        print(f"❌ {msg('error.assembly_key_missing')}")
        return 1
    gateway = _gateway(args)
    if gateway is None:
        return 1

    transcription = settings.transcription
    if args.device:
        transcription = replace(transcription, device_name=args.device)
    if args.input_format:
        transcription = replace(transcription, input_format=args.input_format)

    print("\n" + "=" * 60)
    print("🎙️  Interview Copilot")
    print("=" * 60)
    print(f"Device: {transcription.device_name} ({transcription.input_format})")
    print(f"Say '{settings.pipeline.qa_trigger}' or '{settings.pipeline.interview_trigger}' to switch modes")
    print("Press Ctrl+C to stop")
    print("-" * 60)

    async def run() -> None:
        controller = CopilotController(gateway=gateway, config=_pipeline_config(args))
        ConsolePrinter(show_captions=not args.no_captions).attach(controller.event_bus)
        source = TranscriptStream(controller.event_bus, config=transcription, api_key=assembly_key)
        await controller.start(source=source)
        print(mode_label(controller.session.mode.value))
        try:
            await controller.wait_for_source()
        finally:
            await controller.shutdown()

    try:
        asyncio.run(run())
        return 0
    except KeyboardInterrupt:
        print(f"\n\n👋 {msg('status.stopped')}")
        return 0
    except Exception as e:
        print(f"❌ Live session failed: {e}")
        logger.exception("Live session error")
        return 1


def cmd_replay(args: argparse.Namespace) -> int:
    """
    Replay a transcript file, one fragment per line, through the pipeline.
    """
    from copilot.realtime.controller import CopilotController
    from copilot.realtime.session import Mode
    from copilot.realtime.stt_stream import TranscriptReplay

    path = Path(args.file)
    if not path.is_file():
        print(f"❌ File not found: {path}")
        return 1
    gateway = _gateway(args)
    if gateway is None:
        return 1

    lines = path.read_text(encoding="utf-8").splitlines()
    print(f"\n📼 Replaying {len(lines)} lines from {path.name}")
    print("-" * 60)

    config = _pipeline_config(args)

    async def run() -> None:
        controller = CopilotController(gateway=gateway, config=config)
        ConsolePrinter(show_captions=not args.no_captions).attach(controller.event_bus)
        await controller.start(source=TranscriptReplay(controller.event_bus, lines, delay_s=args.delay))
        if args.mode:
            await controller.set_mode(Mode.parse(args.mode))
        try:
            await controller.wait_for_source()
            await _wait_until_settled(controller, config.min_chars, timeout=config.dispatch_timeout_s + 5)
        finally:
            await controller.shutdown()

    try:
        asyncio.run(run())
        return 0
    except KeyboardInterrupt:
        print(f"\n\n👋 {msg('status.stopped')}")
        return 0
    except Exception as e:
        print(f"❌ Replay failed: {e}")
        logger.exception("Replay error")
        return 1


def cmd_ask(args: argparse.Namespace) -> int:
    """
    Ask a single typed question and print the answer.
    """
    from copilot.realtime.controller import CopilotController

    question = args.question.strip()
    if not question:
        print(f"❌ {msg('error.empty_question')}")
        return 1
    gateway = _gateway(args)
    if gateway is None:
        return 1

    print(f"\n❓ Question: {question}")
    print("-" * 50)
    print(f"⏳ {msg('status.asking')}")

    async def run():
        controller = CopilotController(gateway=gateway)
        await controller.start()
        try:
            return await controller.ask(question)
        finally:
            await controller.shutdown()

    try:
        answer = asyncio.run(run())
    except Exception as e:
        print(f"❌ Ask failed: {e}")
        logger.exception("Ask error")
        return 1

    if args.code_only and answer.code:
        print(answer.code.rstrip())
    else:
        print(f"\n💬 Answer:\n{answer.text}")
    if args.verbose:
        print(f"\n📊 Intent: {answer.classification.intent}, latency: {answer.latency_ms:.0f}ms")
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    """
    Print the classification of a piece of text.
    """
    from copilot.core.classifier import classify, is_code_question, is_log_intent

    result = classify(args.text, evaluate_technical=not args.qa)
    data = {
        "intent": result.intent,
        "is_output_eval": result.is_output_eval,
        "is_technical": result.is_technical,
        "language": result.language,
        "is_code_question": is_code_question(args.text),
        "is_log_intent": is_log_intent(args.text),
    }
    print(json.dumps(data, indent=2))
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    """
    Test the configuration and the Gemini connection.
    """
    print("\n🔧 Testing System Configuration")
    print("-" * 50)

    tests_passed = 0
    tests_failed = 0

    # Test 1: Configuration
    print("\n1. Configuration...")
    try:
        settings.validate_all()
        print("   ✅ Configuration valid")
        tests_passed += 1
    except ValueError as e:
        print(f"   ❌ Configuration error: {e}")
        tests_failed += 1

    # Test 2: Gemini
    print("\n2. Gemini generateContent...")
    if settings.gemini.is_configured:
        from copilot.core.llm import Turn
        from copilot.realtime.gateway import GatewayError, GeminiGateway

        async def ping() -> str:
            gateway = GeminiGateway()
            try:
                return await gateway.generate([Turn.user("Say 'test passed' in 2 words")])
            finally:
                await gateway.close()

        try:
            reply = asyncio.run(ping())
            print(f"   ✅ Gemini working ({settings.gemini.model}): '{reply.strip()[:50]}'")
            tests_passed += 1
        except GatewayError as e:
            print(f"   ❌ Gemini error: {e}")
            tests_failed += 1
    else:
        print(f"   ❌ {msg('error.gemini_key_missing')}")
        tests_failed += 1

    # Test 3: Transcription (optional)
    print("\n3. AssemblyAI streaming...")
    if settings.transcription.is_configured:
        print(f"   ✅ Key configured ({settings.transcription.stream_url})")
        tests_passed += 1
    else:
        print("   ⏭️  Not configured (needed for 'live' only)")

    # Test 4: ffmpeg (optional)
    print("\n4. ffmpeg...")
    import shutil
    ffmpeg = shutil.which(settings.transcription.ffmpeg_path)
    if ffmpeg:
        print(f"   ✅ Found at {ffmpeg}")
        tests_passed += 1
    else:
        print("   ⏭️  Not found (needed for 'live' only)")

    # Summary
    print("\n" + "-" * 50)
    print(f"Results: {tests_passed} passed, {tests_failed} failed")

    return 0 if tests_failed == 0 else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="interview-copilot",
        description="Real-time interview assistant CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Live session:
    python -m copilot.cli live
    python -m copilot.cli live --device default --input-format pulse

  Offline:
    python -m copilot.cli replay samples/interview.txt --delay 0.3
    python -m copilot.cli ask "write a python function to flatten a list"
    python -m copilot.cli classify "console.log([] + {})"

  System check:
    python -m copilot.cli test
        """
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_gemini_key(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--gemini-key",
            help="Gemini API key (default: GEMINI_API_KEY)"
        )

    def add_pipeline_overrides(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--tick",
            type=float,
            help=f"Scheduler tick in seconds (default: {settings.pipeline.tick_interval_s})"
        )
        sub.add_argument(
            "--min-interval",
            type=float,
            help=f"Minimum seconds between answers (default: {settings.pipeline.min_interval_s})"
        )
        sub.add_argument(
            "--no-captions",
            action="store_true",
            help="Do not print transcript fragments"
        )

    # Live command
    live_parser = subparsers.add_parser(
        "live",
        help="Capture, transcribe and answer in real time"
    )
    live_parser.add_argument(
        "--device", "-d",
        help="Capture device name passed to ffmpeg"
    )
    live_parser.add_argument(
        "--input-format",
        help="ffmpeg input format (dshow, pulse, alsa, avfoundation)"
    )
    live_parser.add_argument(
        "--assembly-key",
        help="AssemblyAI API key (default: ASSEMBLYAI_API_KEY)"
    )
    add_gemini_key(live_parser)
    add_pipeline_overrides(live_parser)
    live_parser.set_defaults(func=cmd_live)

    # Replay command
    replay_parser = subparsers.add_parser(
        "replay",
        help="Feed a transcript file through the pipeline"
    )
    replay_parser.add_argument(
        "file",
        help="Text file with one transcript fragment per line"
    )
    replay_parser.add_argument(
        "--delay",
        type=float,
        default=0.5,
        help="Seconds between fragments (default: 0.5)"
    )
    replay_parser.add_argument(
        "--mode", "-m",
        choices=["interview", "qa", "code"],
        help="Start in this mode instead of interview"
    )
    add_gemini_key(replay_parser)
    add_pipeline_overrides(replay_parser)
    replay_parser.set_defaults(func=cmd_replay)

    # Ask command
    ask_parser = subparsers.add_parser(
        "ask",
        help="Ask a single typed question"
    )
    ask_parser.add_argument(
        "question",
        help="Question to ask"
    )
    ask_parser.add_argument(
        "--code-only",
        action="store_true",
        help="Print only the code block when the answer has one"
    )
    add_gemini_key(ask_parser)
    ask_parser.set_defaults(func=cmd_ask)

    # Classify command
    classify_parser = subparsers.add_parser(
        "classify",
        help="Show the intent classification of a text"
    )
    classify_parser.add_argument(
        "text",
        help="Utterance or question"
    )
    classify_parser.add_argument(
        "--qa",
        action="store_true",
        help="Classify as in QA mode (no technical detection)"
    )
    classify_parser.set_defaults(func=cmd_classify)

    # Test command
    test_parser = subparsers.add_parser(
        "test",
        help="Test system configuration"
    )
    test_parser.set_defaults(func=cmd_test)

    return parser


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    if args.verbose:
        import logging
        logging.getLogger().setLevel(logging.DEBUG)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
