"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["APP_ENV"] = "test"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["ASSEMBLYAI_API_KEY"] = "test-assembly-key"
os.environ["LOG_LEVEL"] = "WARNING"

from copilot.config import PipelineConfig
from copilot.core.llm import Turn
from copilot.realtime.events import Event, EventBus
from copilot.realtime.gateway import GenerationGateway
from copilot.realtime.session import new_session


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Reply = Union[str, Exception]


class FakeGateway(GenerationGateway):
    """
    Gateway double that records every request.

    Replies are consumed in order; the last one repeats. An Exception
    reply is raised instead of returned. Setting `hold` to an
    asyncio.Event keeps each call pending until the event is set.
    """

    def __init__(self, replies: Optional[Sequence[Reply]] = None):
        self.replies: List[Reply] = list(replies or ["Sure, here is my answer."])
        self.calls: List[List[Turn]] = []
        self.hold: Optional[asyncio.Event] = None
        self.is_configured = True
        self.closed = False

    async def generate(self, turns: Sequence[Turn]) -> str:
        self.calls.append(list(turns))
        if self.hold is not None:
            await self.hold.wait()
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True

    @property
    def last_turns(self) -> List[Turn]:
        return self.calls[-1]


class RecordingBus(EventBus):
    """Event bus that dispatches on publish and keeps every event."""

    def __init__(self):
        super().__init__()
        self.published: List[Event] = []

    async def publish(self, event: Event) -> None:
        self.published.append(event)
        await self.publish_immediate(event)

    def of_type(self, event_type: type) -> List[Event]:
        return [e for e in self.published if isinstance(e, event_type)]


@pytest.fixture
def clock():
    """Manual clock starting at t=100."""
    return ManualClock()


@pytest.fixture
def pipeline_config():
    """Pipeline settings independent of the environment."""
    return PipelineConfig(
        tick_interval_s=1.0,
        min_interval_s=2.0,
        min_chars=6,
        dispatch_timeout_s=5.0,
        history_max_turns=8,
        qa_trigger="code mode",
        interview_trigger="interview mode",
    )


@pytest.fixture
def session(pipeline_config, clock):
    """Fresh session on the manual clock."""
    return new_session(pipeline_config, clock=clock)


@pytest.fixture
def bus():
    """Recording event bus."""
    return RecordingBus()


@pytest.fixture
def gateway():
    """Fake gateway with a single conversational reply."""
    return FakeGateway()


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    """Factory for fake gateways with scripted replies."""
    return FakeGateway
