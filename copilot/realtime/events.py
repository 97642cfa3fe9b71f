"""
Event System for the Interview Copilot

Async event bus connecting the transcript source, the aggregation pipeline
and whatever presents results to the user (console printer, SSE stream).

Event Types:
- TranscriptEvent: A transcript fragment (also used as a live caption)
- ModeChangeEvent: The active mode was switched by a trigger phrase
- ResponseEvent: A generated answer ready for display
- ErrorEvent: Advisory error text for the user
- ConnectionEvent: Transcript source connection status
"""

import asyncio
import time
import uuid
from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, TypeVar

from copilot.logger import get_logger
from copilot.realtime.session import Mode

logger = get_logger(__name__)

T = TypeVar("T", bound="Event")
EventHandler = Callable[[T], Awaitable[None]]


class EventPriority(Enum):
    """Priority levels for event processing."""
    HIGH = 1      # Mode changes, errors
    NORMAL = 2    # Transcripts, responses
    LOW = 3       # Connection status


@dataclass
class Event(ABC):
    """Base event class for all pipeline events."""
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    timestamp: float = field(default_factory=time.time)
    priority: EventPriority = EventPriority.NORMAL
    cancelled: bool = False
    source: str = ""

    def cancel(self) -> None:
        """Mark this event as cancelled."""
        self.cancelled = True

    @property
    def age_ms(self) -> float:
        """Get event age in milliseconds."""
        return (time.time() - self.timestamp) * 1000

    @property
    def kind(self) -> str:
        """Short name used by sinks, e.g. 'transcript'."""
        return type(self).__name__.replace("Event", "").lower()

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view for sinks (SSE payloads, logs)."""
        return {"type": self.kind, "event_id": self.event_id, "timestamp": self.timestamp}


# ============================================================================
# Transcript Events
# ============================================================================

@dataclass
class TranscriptEvent(Event):
    """A transcript fragment from the transcription service."""
    text: str = ""
    is_final: bool = True
    source: str = "stt"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(text=self.text, is_final=self.is_final)
        return data


@dataclass
class ModeChangeEvent(Event):
    """The session switched mode."""
    mode: Mode = Mode.INTERVIEW
    previous_mode: Mode = Mode.INTERVIEW
    priority: EventPriority = EventPriority.HIGH
    source: str = "aggregator"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(mode=self.mode.value, previous_mode=self.previous_mode.value)
        return data


# ============================================================================
# Answer Events
# ============================================================================

@dataclass
class ResponseEvent(Event):
    """
    A generated answer.

    `text` is what gets displayed. `explanation` and `code` are the same
    reply split around its first fenced block so code answers can be shown
    separately.
    """
    text: str = ""
    mode: Mode = Mode.INTERVIEW
    origin: str = "transcript"     # "transcript" or "ask"
    utterance: str = ""
    intent: str = "general"
    language: str = ""
    explanation: str = ""
    code: str = ""
    latency_ms: float = 0.0
    source: str = "scheduler"

    @property
    def has_code(self) -> bool:
        return bool(self.code)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            text=self.text,
            mode=self.mode.value,
            origin=self.origin,
            utterance=self.utterance,
            intent=self.intent,
            language=self.language,
            explanation=self.explanation,
            code=self.code,
            latency_ms=round(self.latency_ms, 1),
        )
        return data


@dataclass
class ErrorEvent(Event):
    """Advisory error shown to the user. Never stops the session."""
    message: str = ""
    mode: Mode = Mode.INTERVIEW
    priority: EventPriority = EventPriority.HIGH
    source: str = "scheduler"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(message=self.message, mode=self.mode.value)
        return data


class ConnectionStatus(str, Enum):
    """Transcript source connection status."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass
class ConnectionEvent(Event):
    """Transcript source status change."""
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    detail: str = ""
    priority: EventPriority = EventPriority.LOW
    source: str = "stt"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(status=self.status.value, detail=self.detail)
        return data


# ============================================================================
# Event Bus
# ============================================================================

class EventBus:
    """
    Simple async event bus.

    Features:
    - Async publish/subscribe
    - Priority-based processing
    - Direct dispatch when ordering with the caller matters

    Subscribing to a base class (e.g. Event) receives every subclass.
    """

    def __init__(self, max_queue_size: int = 500):
        self._handlers: Dict[type, List[EventHandler]] = {}
        self._queue: asyncio.PriorityQueue = asyncio.PriorityQueue(maxsize=max_queue_size)
        self._running: bool = False
        self._event_count: int = 0
        self._latency_samples: List[float] = []

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        """Subscribe to events of a specific type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: EventHandler) -> None:
        """Unsubscribe a handler from an event type."""
        if event_type in self._handlers:
            self._handlers[event_type] = [
                h for h in self._handlers[event_type] if h != handler
            ]

    async def publish(self, event: Event) -> None:
        """Queue an event for processing."""
        if event.cancelled:
            return

        self._event_count += 1
        queue_item = (event.priority.value, self._event_count, event)

        try:
            self._queue.put_nowait(queue_item)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping {type(event).__name__}")

    async def publish_immediate(self, event: Event) -> None:
        """Immediately dispatch an event (bypass queue)."""
        await self._dispatch(event)

    async def _dispatch(self, event: Event) -> None:
        """Dispatch event to all registered handlers."""
        if event.cancelled:
            return

        self._latency_samples.append(event.age_ms)
        if len(self._latency_samples) > 100:
            self._latency_samples.pop(0)

        handlers = []
        for registered_type, type_handlers in self._handlers.items():
            if isinstance(event, registered_type):
                handlers.extend(type_handlers)

        for handler in handlers:
            try:
                await handler(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Handler error for {type(event).__name__}: {e}")

    async def run(self) -> None:
        """Start the event processing loop."""
        self._running = True
        logger.debug("Event bus started")

        while self._running:
            try:
                _, _, event = await asyncio.wait_for(
                    self._queue.get(), timeout=0.1
                )
                await self._dispatch(event)
                self._queue.task_done()
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Event bus error: {e}")

        logger.debug("Event bus stopped")

    def stop(self) -> None:
        """Stop the event processing loop."""
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def avg_latency_ms(self) -> float:
        """Get average event processing latency."""
        if not self._latency_samples:
            return 0.0
        return sum(self._latency_samples) / len(self._latency_samples)

    @property
    def queue_size(self) -> int:
        """Get current queue size."""
        return self._queue.qsize()

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for queue to empty."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Event queue drain timed out")
