"""
Response Scheduler Module

Decides on a fixed cadence whether the pending buffer should be sent for
an answer. One dispatch task slot per session:

- EMPTY: nothing buffered
- BUSY: a dispatch is in flight, or the last success was too recent
- TOO_SHORT: buffered text below the minimum length (kept for later)
- DISPATCHED: buffer drained and a dispatch task started

The buffer is swapped to empty before the dispatch task runs, so fragments
arriving during the call start the next utterance. A failed dispatch is
reported and not retried.
"""

import asyncio
from enum import Enum
from typing import Optional

from copilot.config import PipelineConfig, settings
from copilot.logger import get_logger
from copilot.realtime.conversation import Answer, ConversationManager
from copilot.realtime.events import ErrorEvent, EventBus, ResponseEvent
from copilot.realtime.gateway import GatewayError, GatewayTransportError
from copilot.realtime.session import Mode, Session

logger = get_logger(__name__)


class TickOutcome(Enum):
    """Result of one scheduler tick."""
    STOPPED = "stopped"
    EMPTY = "empty"
    BUSY = "busy"
    TOO_SHORT = "too_short"
    DISPATCHED = "dispatched"


def response_event(answer: Answer, origin: str) -> ResponseEvent:
    """Build the sink event for an answer."""
    return ResponseEvent(
        text=answer.text,
        mode=answer.mode,
        origin=origin,
        utterance=answer.question,
        intent=answer.classification.intent,
        language=answer.classification.language,
        explanation=answer.explanation,
        code=answer.code,
        latency_ms=answer.latency_ms,
    )


class ResponseScheduler:
    """
    Single-slot task supervisor for generation dispatches.

    Usage:
        scheduler = ResponseScheduler(session, manager, event_bus)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        session: Session,
        manager: ConversationManager,
        event_bus: EventBus,
        config: Optional[PipelineConfig] = None,
    ):
        self._session = session
        self._manager = manager
        self._event_bus = event_bus
        self._config = config or settings.pipeline

        self._running = False
        self._tick_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None

        # Metrics
        self._dispatch_count = 0
        self._failure_count = 0
        self._discarded_count = 0

    async def start(self) -> None:
        """Start the tick loop."""
        if self._running:
            return
        self._running = True
        self._tick_task = asyncio.create_task(self._run())
        logger.debug(f"Scheduler started (tick={self._config.tick_interval_s}s)")

    async def stop(self) -> None:
        """
        Stop ticking. An outstanding dispatch is left to finish; its
        result is dropped once the session is inactive.
        """
        self._running = False
        if self._tick_task:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None
        logger.debug("Scheduler stopped")

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self._config.tick_interval_s)
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}")

    @property
    def slot_busy(self) -> bool:
        """True while a dispatch task occupies the slot."""
        return self._dispatch_task is not None and not self._dispatch_task.done()

    def tick(self) -> TickOutcome:
        """
        Run one scheduling decision. Never awaits, so draining the buffer
        and taking the gate happen without interleaving.
        """
        session = self._session
        if not session.active:
            return TickOutcome.STOPPED

        if session.buffer.is_empty:
            return TickOutcome.EMPTY

        now = session.now()
        if self.slot_busy or session.gate.is_busy(now, self._config.min_interval_s):
            return TickOutcome.BUSY

        if len(session.buffer) < self._config.min_chars:
            return TickOutcome.TOO_SHORT

        text = session.buffer.drain().strip()
        mode = session.mode
        session.gate.acquire()
        self._dispatch_count += 1
        logger.info(f"Dispatching {mode.value} utterance ({len(text)} chars)")
        self._dispatch_task = asyncio.create_task(self._dispatch(mode, text))
        return TickOutcome.DISPATCHED

    async def _dispatch(self, mode: Mode, text: str) -> None:
        session = self._session
        answer: Optional[Answer] = None
        error: Optional[GatewayError] = None

        try:
            answer = await asyncio.wait_for(
                self._manager.process(mode, text),
                timeout=self._config.dispatch_timeout_s,
            )
        except asyncio.TimeoutError:
            error = GatewayTransportError(
                f"no reply within {self._config.dispatch_timeout_s:.0f}s"
            )
        except GatewayError as e:
            error = e
        except Exception as e:
            # Anything else must still release the gate
            logger.exception("Unexpected dispatch failure")
            error = GatewayError(f"{type(e).__name__}: {e}")

        if not session.active:
            self._discarded_count += 1
            logger.info(f"Session stopped during dispatch, discarding {mode.value} result")
            return

        session.gate.release(success=error is None, now=session.now())

        if error is not None:
            self._failure_count += 1
            logger.warning(f"Gemini {mode.value} error: {error}")
            await self._event_bus.publish(
                ErrorEvent(message=f"Gemini {mode.value} error: {error}", mode=mode)
            )
            return

        await self._event_bus.publish(response_event(answer, origin="transcript"))

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for the outstanding dispatch, if any, to finish."""
        if self._dispatch_task is not None:
            await asyncio.wait_for(asyncio.shield(self._dispatch_task), timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict:
        return {
            "dispatches": self._dispatch_count,
            "failures": self._failure_count,
            "discarded": self._discarded_count,
        }
