"""
Conversation Memory Module

Bounded rolling history of turns, one instance per mode. The system
instruction is held apart from the rolling window so eviction never drops it.
"""

from collections import deque
from typing import Deque, Iterable, List

from copilot.core.llm import Role, Turn
from copilot.logger import get_logger

logger = get_logger(__name__)


class ConversationHistory:
    """
    Rolling conversation history.

    Holds at most `max_turns` turns; the oldest are evicted first. The
    system turn is prepended to every context and is not counted.

    Usage:
        history = ConversationHistory(INTERVIEW_SYSTEM_PROMPT, max_turns=8)
        turns = history.context([Turn.user("Interviewer: ...")])
        ...
        history.commit(Turn.user("Interviewer: ..."), Turn.model(answer))
    """

    def __init__(self, system_prompt: str, max_turns: int = 8, name: str = ""):
        if max_turns < 1:
            raise ValueError("max_turns must be positive")
        self._system_turn = Turn(Role.USER, system_prompt)
        self._max_turns = max_turns
        self._turns: Deque[Turn] = deque(maxlen=max_turns)
        self._name = name
        self._commit_count = 0

    @property
    def system_turn(self) -> Turn:
        return self._system_turn

    @property
    def max_turns(self) -> int:
        return self._max_turns

    @property
    def turns(self) -> List[Turn]:
        """Rolling turns, oldest first (system turn excluded)."""
        return list(self._turns)

    @property
    def commit_count(self) -> int:
        """Number of successful commits since creation or clear."""
        return self._commit_count

    def context(self, extra: Iterable[Turn] = ()) -> List[Turn]:
        """Full request context: system turn, rolling turns, then `extra`."""
        return [self._system_turn, *self._turns, *extra]

    def minimal_context(self, extra: Iterable[Turn] = ()) -> List[Turn]:
        """System turn followed by `extra` only, ignoring the rolling turns."""
        return [self._system_turn, *extra]

    def commit(self, *turns: Turn) -> None:
        """Append the turns of one exchange together, evicting the oldest."""
        if not turns:
            return
        self._turns.extend(turns)
        self._commit_count += 1
        logger.debug(f"{self._name or 'history'}: committed {len(turns)} turns ({len(self._turns)}/{self._max_turns})")

    def clear(self) -> None:
        """Drop every rolling turn. The system turn stays."""
        self._turns.clear()
        self._commit_count = 0

    def snapshot(self) -> List[dict]:
        """Plain-dict view for inspection endpoints."""
        return [{"role": t.role.value, "text": t.text} for t in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(self._turns)
