"""
Real-Time Pipeline Module

Event-driven pipeline from transcript fragments to displayed answers.

Architecture:
- Event Bus: Async event coordination and presentation sink
- Transcript Sources: AssemblyAI websocket, file replay
- Aggregator: Fragment buffering and spoken mode switches
- Scheduler: Timed single-slot dispatch with a dispatch gate
- Conversation Manager: Context building and history commits
- Gateway: Gemini generateContent client
- Controller: Session lifecycle and manual asks

Usage:
    from copilot.realtime import CopilotController, TranscriptStream

    controller = CopilotController()
    await controller.start(source=TranscriptStream(controller.event_bus))
"""

from .session import Mode, PendingBuffer, DispatchGate, Session, new_session
from .events import (
    Event,
    EventBus,
    EventPriority,
    TranscriptEvent,
    ModeChangeEvent,
    ResponseEvent,
    ErrorEvent,
    ConnectionEvent,
    ConnectionStatus,
)
from .memory import ConversationHistory
from .gateway import (
    GenerationGateway,
    GeminiGateway,
    GatewayError,
    GatewayConfigError,
    GatewayRequestError,
    GatewayTransportError,
)
from .conversation import Answer, ConversationManager
from .aggregator import UtteranceAggregator
from .scheduler import ResponseScheduler, TickOutcome
from .audio_capture import AudioCapture
from .stt_stream import TranscriptStream, TranscriptReplay, parse_message
from .controller import CopilotController, AskInProgressError, NoSessionError

__all__ = [
    # Session
    "Mode",
    "PendingBuffer",
    "DispatchGate",
    "Session",
    "new_session",
    # Events
    "Event",
    "EventBus",
    "EventPriority",
    "TranscriptEvent",
    "ModeChangeEvent",
    "ResponseEvent",
    "ErrorEvent",
    "ConnectionEvent",
    "ConnectionStatus",
    # Memory
    "ConversationHistory",
    # Gateway
    "GenerationGateway",
    "GeminiGateway",
    "GatewayError",
    "GatewayConfigError",
    "GatewayRequestError",
    "GatewayTransportError",
    # Pipeline
    "Answer",
    "ConversationManager",
    "UtteranceAggregator",
    "ResponseScheduler",
    "TickOutcome",
    # Sources
    "AudioCapture",
    "TranscriptStream",
    "TranscriptReplay",
    "parse_message",
    # Controller
    "CopilotController",
    "AskInProgressError",
    "NoSessionError",
]
