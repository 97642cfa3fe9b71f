"""
Session State Module

Everything one live session owns: the active mode, the two conversation
histories, the pending transcript buffer and the dispatch gate. One Session
per running pipeline; nothing here is module-global.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

from copilot.config import PipelineConfig
from copilot.core.llm import INTERVIEW_SYSTEM_PROMPT, QA_SYSTEM_PROMPT
from copilot.realtime.memory import ConversationHistory

Clock = Callable[[], float]


class Mode(str, Enum):
    """Answering mode of a session."""
    INTERVIEW = "interview"
    QA = "qa"

    @classmethod
    def parse(cls, value: str) -> "Mode":
        """Accept 'interview', 'qa' or 'code' (case-insensitive)."""
        normalized = (value or "").strip().lower()
        if normalized == "code":
            return cls.QA
        return cls(normalized)


@dataclass
class PendingBuffer:
    """
    Transcript text accumulated since the last dispatch.

    Attributes:
        text: Concatenated fragments, single-space separated
        last_append_time: Clock value of the last append, None when empty
    """
    text: str = ""
    last_append_time: Optional[float] = None

    def append(self, fragment: str, now: float) -> None:
        """Append a trimmed fragment separated by one space."""
        fragment = fragment.strip()
        if not fragment:
            return
        self.text = f"{self.text} {fragment}" if self.text else fragment
        self.last_append_time = now

    def drain(self) -> str:
        """Swap the buffer to empty and return what it held."""
        text, self.text = self.text, ""
        self.last_append_time = None
        return text

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    def __len__(self) -> int:
        return len(self.text.strip())


@dataclass
class DispatchGate:
    """
    Guards the generation call: one in flight, and a minimum gap after
    each successful dispatch.

    Attributes:
        is_processing: A dispatch is outstanding
        last_dispatch_time: Clock value of the last successful dispatch
    """
    is_processing: bool = False
    last_dispatch_time: Optional[float] = None

    def is_busy(self, now: float, min_interval: float) -> bool:
        """Check whether a tick must skip."""
        if self.is_processing:
            return True
        if self.last_dispatch_time is None:
            return False
        return now - self.last_dispatch_time < min_interval

    def acquire(self) -> None:
        if self.is_processing:
            raise RuntimeError("Dispatch gate already held")
        self.is_processing = True

    def release(self, success: bool, now: float) -> None:
        """Clear the in-flight flag; only success restarts the interval."""
        self.is_processing = False
        if success:
            self.last_dispatch_time = now


@dataclass
class Session:
    """
    State of one live session.

    Attributes:
        histories: One ConversationHistory per mode
        mode: Active mode (starts in interview)
        buffer: Pending transcript text
        gate: Dispatch gate
        clock: Monotonic time source (injectable for tests)
        active: False once the session is stopped
    """
    histories: Dict[Mode, ConversationHistory]
    mode: Mode = Mode.INTERVIEW
    buffer: PendingBuffer = field(default_factory=PendingBuffer)
    gate: DispatchGate = field(default_factory=DispatchGate)
    clock: Clock = time.monotonic
    active: bool = True
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: float = field(default_factory=time.time)

    def history(self, mode: Optional[Mode] = None) -> ConversationHistory:
        """History of `mode`, or of the active mode."""
        return self.histories[mode or self.mode]

    def now(self) -> float:
        return self.clock()

    def snapshot(self) -> dict:
        """Plain-dict view of the session for status endpoints."""
        return {
            "session_id": self.session_id,
            "active": self.active,
            "mode": self.mode.value,
            "pending_text": self.buffer.text,
            "is_processing": self.gate.is_processing,
            "history": {m.value: h.snapshot() for m, h in self.histories.items()},
        }


def new_session(config: PipelineConfig, clock: Optional[Clock] = None) -> Session:
    """Create a session with empty interview and QA histories."""
    histories = {
        Mode.INTERVIEW: ConversationHistory(
            INTERVIEW_SYSTEM_PROMPT, max_turns=config.history_max_turns, name="interview"
        ),
        Mode.QA: ConversationHistory(
            QA_SYSTEM_PROMPT, max_turns=config.history_max_turns, name="qa"
        ),
    }
    return Session(histories=histories, clock=clock or time.monotonic)
