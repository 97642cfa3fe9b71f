"""
Tests for the Copilot Controller

Tests session lifecycle, manual asks and the manual overrides.
"""

import asyncio
from dataclasses import replace

import pytest

from copilot.realtime.controller import AskInProgressError, CopilotController, NoSessionError
from copilot.realtime.events import ErrorEvent, ModeChangeEvent, ResponseEvent, TranscriptEvent
from copilot.realtime.gateway import GatewayRequestError, GatewayTransportError
from copilot.realtime.session import Mode
from copilot.realtime.stt_stream import TranscriptReplay

from tests.conftest import FakeGateway, RecordingBus


def make_controller(pipeline_config, gateway=None, clock=None, **overrides):
    # Long tick so tests drive dispatches explicitly
    config = replace(pipeline_config, tick_interval_s=60.0, **overrides)
    bus = RecordingBus()
    controller = CopilotController(
        gateway=gateway or FakeGateway(), config=config, clock=clock, event_bus=bus
    )
    return controller, bus


class TestLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, pipeline_config):
        gateway = FakeGateway()
        controller, bus = make_controller(pipeline_config, gateway)

        session = await controller.start()
        assert controller.is_running is True
        assert session.mode is Mode.INTERVIEW
        assert controller.scheduler.is_running is True

        await controller.shutdown()
        assert controller.is_running is False
        assert session.active is False
        assert gateway.closed is True

    @pytest.mark.asyncio
    async def test_restart_creates_fresh_session(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        first = await controller.start()
        second = await controller.start()

        assert first is not second
        assert first.active is False
        assert second.active is True
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_invalid_config_rejected(self, pipeline_config):
        controller, bus = make_controller(pipeline_config, history_max_turns=1)
        with pytest.raises(ValueError):
            await controller.start()
        assert controller.is_running is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        await controller.stop()
        await controller.start()
        await controller.stop()
        await controller.stop()
        assert controller.is_running is False
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_source_fragments_reach_buffer(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        source = TranscriptReplay(bus, ["I worked", "on payments"], delay_s=0)

        session = await controller.start(source=source)
        await controller.wait_for_source()

        assert session.buffer.text == "I worked on payments"
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_source_failure_reported(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)

        class BrokenSource:
            async def run(self):
                raise ConnectionError("socket closed")

            async def stop(self):
                pass

        await controller.start(source=BrokenSource())
        await controller.wait_for_source()

        errors = bus.of_type(ErrorEvent)
        assert errors[0].message == "Transcription error: socket closed"
        await controller.shutdown()


class TestAsk:
    """Tests for manual asks."""

    @pytest.mark.asyncio
    async def test_ask_publishes_response(self, pipeline_config):
        gateway = FakeGateway(["Paris."])
        controller, bus = make_controller(pipeline_config, gateway)
        session = await controller.start()

        answer = await controller.ask("what is the capital of France?")

        assert answer.text == "Paris."
        assert controller.stats["commits"]["qa"] == 1
        responses = bus.of_type(ResponseEvent)
        assert responses[-1].origin == "ask"
        assert responses[-1].mode is Mode.QA
        assert len(session.history(Mode.QA)) == 2
        assert len(session.history(Mode.INTERVIEW)) == 0
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_code_ask_reported_as_technical(self, pipeline_config):
        gateway = FakeGateway(["Explanation:\nSlice it.\n\nCode:\n```python\ns[::-1]\n```"])
        controller, bus = make_controller(pipeline_config, gateway)
        await controller.start()

        await controller.ask("write a python function to reverse a string")

        response = bus.of_type(ResponseEvent)[-1]
        assert response.intent == "technical"
        assert response.language == "Python"
        assert response.code == "s[::-1]\n"
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_ask_without_session(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        with pytest.raises(NoSessionError):
            await controller.ask("hello there")

    @pytest.mark.asyncio
    async def test_empty_ask(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        await controller.start()
        with pytest.raises(ValueError):
            await controller.ask("   ")
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_ask_rejected(self, pipeline_config):
        gateway = FakeGateway(["done"])
        gateway.hold = asyncio.Event()
        controller, bus = make_controller(pipeline_config, gateway)
        await controller.start()

        first = asyncio.create_task(controller.ask("what is a closure"))
        await asyncio.sleep(0)
        assert controller.ask_in_progress is True
        with pytest.raises(AskInProgressError):
            await controller.ask("what is a promise")

        gateway.hold.set()
        answer = await first
        assert answer.text == "done"
        assert controller.ask_in_progress is False
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_ask_failure_publishes_error(self, pipeline_config):
        gateway = FakeGateway([GatewayRequestError(500, "internal")])
        controller, bus = make_controller(pipeline_config, gateway)
        await controller.start()

        with pytest.raises(GatewayRequestError):
            await controller.ask("what is a closure")

        assert bus.of_type(ErrorEvent)[-1].message.startswith("Gemini ask error: HTTP 500")
        assert controller.ask_in_progress is False
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_ask_timeout(self, pipeline_config):
        gateway = FakeGateway()
        gateway.hold = asyncio.Event()
        controller, bus = make_controller(pipeline_config, gateway, dispatch_timeout_s=0.05)
        await controller.start()

        with pytest.raises(GatewayTransportError):
            await controller.ask("what is a closure")

        assert "no reply within" in bus.of_type(ErrorEvent)[-1].message
        await controller.shutdown()


class TestOverrides:
    """Tests for manual mode changes and injected fragments."""

    @pytest.mark.asyncio
    async def test_set_mode(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        session = await controller.start()

        await controller.set_mode(Mode.QA)

        assert session.mode is Mode.QA
        event = bus.of_type(ModeChangeEvent)[-1]
        assert event.source == "manual"
        assert event.previous_mode is Mode.INTERVIEW
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_inject_then_dispatch(self, pipeline_config, clock):
        controller, bus = make_controller(pipeline_config, clock=clock)
        session = await controller.start()

        await controller.inject("Tell me about yourself")
        assert bus.of_type(TranscriptEvent)[-1].source == "inject"
        assert session.buffer.text == "Tell me about yourself"

        controller.scheduler.tick()
        await controller.scheduler.wait_idle(timeout=1.0)
        assert bus.of_type(ResponseEvent)[-1].origin == "transcript"
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_overrides_need_session(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        with pytest.raises(NoSessionError):
            await controller.set_mode(Mode.QA)
        with pytest.raises(NoSessionError):
            await controller.inject("hello")

    @pytest.mark.asyncio
    async def test_stats(self, pipeline_config):
        controller, bus = make_controller(pipeline_config)
        await controller.start()
        stats = controller.stats
        assert stats["running"] is True
        assert stats["scheduler"]["dispatches"] == 0
        assert stats["aggregator"]["fragments"] == 0
        assert stats["commits"] == {"interview": 0, "qa": 0}
        await controller.shutdown()
