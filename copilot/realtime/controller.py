"""
Copilot Controller Module

Wires one live session together: event bus, aggregator, scheduler,
conversation manager, gateway and an optional transcript source.

Usage:
    controller = CopilotController()
    await controller.start(source=TranscriptStream(controller.event_bus))
    answer = await controller.ask("what is a closure?")
    await controller.stop()
"""

import asyncio
from typing import Any, Dict, Optional, Protocol

from copilot.config import PipelineConfig, settings
from copilot.logger import get_logger
from copilot.realtime.aggregator import UtteranceAggregator
from copilot.realtime.conversation import Answer, ConversationManager
from copilot.realtime.events import (
    ErrorEvent,
    EventBus,
    ModeChangeEvent,
    TranscriptEvent,
)
from copilot.realtime.gateway import (
    GatewayError,
    GatewayTransportError,
    GeminiGateway,
    GenerationGateway,
)
from copilot.realtime.scheduler import ResponseScheduler, response_event
from copilot.realtime.session import Clock, Mode, Session, new_session

logger = get_logger(__name__)


class AskInProgressError(RuntimeError):
    """A manual ask is already outstanding."""


class NoSessionError(RuntimeError):
    """The operation needs a running session."""


class TranscriptSource(Protocol):
    """Anything that publishes TranscriptEvents until stopped."""

    async def run(self) -> None: ...

    async def stop(self) -> None: ...


class CopilotController:
    """
    Owns the lifecycle of one session at a time.

    Features:
    - start/stop of the tick loop, bus and transcript source
    - manual ask against the QA history, one at a time
    - manual mode override and fragment injection (HTTP API)
    """

    def __init__(
        self,
        gateway: Optional[GenerationGateway] = None,
        config: Optional[PipelineConfig] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self._config = config or settings.pipeline
        self._gateway = gateway or GeminiGateway()
        self._clock = clock
        self._event_bus = event_bus or EventBus()

        self._session: Optional[Session] = None
        self._manager: Optional[ConversationManager] = None
        self._aggregator: Optional[UtteranceAggregator] = None
        self._scheduler: Optional[ResponseScheduler] = None
        self._source: Optional[TranscriptSource] = None

        self._bus_task: Optional[asyncio.Task] = None
        self._source_task: Optional[asyncio.Task] = None
        self._ask_lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self, source: Optional[TranscriptSource] = None) -> Session:
        """
        Start a fresh session.

        Args:
            source: Optional transcript source run as a background task

        Returns:
            The new Session
        """
        if self.is_running:
            await self.stop()

        self._config.validate()
        self._session = new_session(self._config, clock=self._clock)
        self._manager = ConversationManager(self._session, self._gateway)
        self._aggregator = UtteranceAggregator(self._session, self._event_bus, self._config)
        self._aggregator.attach()
        self._scheduler = ResponseScheduler(
            self._session, self._manager, self._event_bus, self._config
        )

        if not self._event_bus.is_running:
            self._bus_task = asyncio.create_task(self._event_bus.run())
        await self._scheduler.start()

        if source is not None:
            self._source = source
            self._source_task = asyncio.create_task(self._run_source(source))

        logger.info(f"Session {self._session.session_id} started in {self._session.mode.value} mode")
        return self._session

    async def _run_source(self, source: TranscriptSource) -> None:
        try:
            await source.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Transcript source failed")
            await self._event_bus.publish(
                ErrorEvent(message=f"Transcription error: {e}", source="stt")
            )

    async def stop(self) -> None:
        """
        Stop the session. An outstanding generation is not cancelled; its
        result is discarded when it arrives.
        """
        session = self._session
        if session is None or not session.active:
            return
        session.active = False

        if self._scheduler:
            await self._scheduler.stop()
        if self._aggregator:
            self._aggregator.detach()

        if self._source is not None:
            await self._source.stop()
        if self._source_task is not None:
            try:
                await asyncio.wait_for(self._source_task, timeout=3.0)
            except asyncio.TimeoutError:
                logger.warning("Transcript source did not stop in time, cancelling")
                self._source_task.cancel()
        self._source = None
        self._source_task = None

        logger.info(f"Session {session.session_id} stopped")

    async def shutdown(self) -> None:
        """Stop the session, the event bus and the gateway."""
        await self.stop()
        await self._event_bus.drain(timeout=2.0)
        self._event_bus.stop()
        if self._bus_task:
            try:
                await asyncio.wait_for(self._bus_task, timeout=1.0)
            except asyncio.TimeoutError:
                self._bus_task.cancel()
            self._bus_task = None
        await self._gateway.close()

    async def wait_for_source(self) -> None:
        """Wait until the transcript source finishes on its own."""
        if self._source_task is not None:
            await asyncio.shield(self._source_task)

    # ========================================================================
    # Operations
    # ========================================================================

    def _require_session(self) -> Session:
        if self._session is None or not self._session.active:
            raise NoSessionError("No active session")
        return self._session

    async def ask(self, question: str) -> Answer:
        """
        Answer a typed question using the QA history.

        Raises:
            ValueError: Empty question
            AskInProgressError: Another ask has not finished
            NoSessionError: No running session
            GatewayError: Generation failed (also published as ErrorEvent)
        """
        if not question or not question.strip():
            raise ValueError("Question cannot be empty")
        self._require_session()
        if self._ask_lock.locked():
            raise AskInProgressError("An ask is already in progress")

        async with self._ask_lock:
            try:
                answer = await asyncio.wait_for(
                    self._manager.ask(question),
                    timeout=self._config.dispatch_timeout_s,
                )
            except asyncio.TimeoutError as e:
                error = GatewayTransportError(f"no reply within {self._config.dispatch_timeout_s:.0f}s")
                await self._event_bus.publish(ErrorEvent(message=f"Gemini ask error: {error}", mode=Mode.QA))
                raise error from e
            except GatewayError as e:
                await self._event_bus.publish(ErrorEvent(message=f"Gemini ask error: {e}", mode=Mode.QA))
                raise

        if self._session is not None and self._session.active:
            await self._event_bus.publish(response_event(answer, origin="ask"))
        return answer

    async def set_mode(self, mode: Mode) -> None:
        """Force a mode without a spoken trigger."""
        session = self._require_session()
        previous, session.mode = session.mode, mode
        await self._event_bus.publish(ModeChangeEvent(mode=mode, previous_mode=previous, source="manual"))

    async def inject(self, text: str) -> None:
        """Feed a fragment as if it came from the transcript source."""
        self._require_session()
        await self._event_bus.publish(TranscriptEvent(text=text, source="inject"))

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def gateway(self) -> GenerationGateway:
        return self._gateway

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def scheduler(self) -> Optional[ResponseScheduler]:
        return self._scheduler

    @property
    def is_running(self) -> bool:
        return self._session is not None and self._session.active

    @property
    def ask_in_progress(self) -> bool:
        return self._ask_lock.locked()

    @property
    def stats(self) -> Dict[str, Any]:
        """Get controller statistics."""
        data: Dict[str, Any] = {"running": self.is_running, "bus_latency_ms": self._event_bus.avg_latency_ms}
        if self._scheduler:
            data["scheduler"] = self._scheduler.stats
        if self._aggregator:
            data["aggregator"] = self._aggregator.stats
        if self._session is not None:
            data["commits"] = {m.value: h.commit_count for m, h in self._session.histories.items()}
        if hasattr(self._gateway, "stats"):
            data["gateway"] = self._gateway.stats
        return data
