"""
Utterance Aggregator Module

Merges transcript fragments into the session's pending buffer and handles
the spoken mode-switch phrases. A fragment containing a trigger phrase
switches the mode and is dropped; it never reaches the buffer.
"""

from typing import Optional

from copilot.config import PipelineConfig, settings
from copilot.logger import get_logger
from copilot.realtime.events import EventBus, ModeChangeEvent, TranscriptEvent
from copilot.realtime.session import Mode, Session

logger = get_logger(__name__)


class UtteranceAggregator:
    """
    Appends fragments to the pending buffer.

    Usage:
        aggregator = UtteranceAggregator(session, event_bus)
        aggregator.attach()          # consume TranscriptEvents from the bus
        await aggregator.on_fragment("I worked on")
    """

    def __init__(
        self,
        session: Session,
        event_bus: EventBus,
        config: Optional[PipelineConfig] = None,
    ):
        config = config or settings.pipeline
        self._session = session
        self._event_bus = event_bus
        self._triggers = {
            Mode.QA: config.qa_trigger.lower().strip(),
            Mode.INTERVIEW: config.interview_trigger.lower().strip(),
        }
        self._fragment_count = 0
        self._switch_count = 0

    def attach(self) -> None:
        """Start consuming TranscriptEvents from the bus."""
        self._event_bus.subscribe(TranscriptEvent, self._handle_transcript)

    def detach(self) -> None:
        self._event_bus.unsubscribe(TranscriptEvent, self._handle_transcript)

    async def _handle_transcript(self, event: TranscriptEvent) -> None:
        await self.on_fragment(event.text)

    def match_trigger(self, text: str) -> Optional[Mode]:
        """
        Return the mode whose trigger phrase appears in the text.

        When both phrases appear, the one spoken last wins.
        """
        lowered = text.lower()
        found = [(lowered.rfind(phrase), mode) for mode, phrase in self._triggers.items()]
        found = [(pos, mode) for pos, mode in found if pos >= 0]
        if not found:
            return None
        return max(found, key=lambda item: item[0])[1]

    async def on_fragment(self, text) -> bool:
        """
        Consume one fragment.

        Args:
            text: Fragment from the transcript source; non-strings and blank
                strings are ignored

        Returns:
            True if the fragment was appended to the buffer
        """
        if not isinstance(text, str) or not text.strip():
            return False
        if not self._session.active:
            return False

        target = self.match_trigger(text)
        if target is not None:
            previous = self._session.mode
            self._session.mode = target
            self._switch_count += 1
            logger.info(f"Mode switch: {previous.value} -> {target.value}")
            await self._event_bus.publish(ModeChangeEvent(mode=target, previous_mode=previous))
            return False

        self._session.buffer.append(text, self._session.now())
        self._fragment_count += 1
        return True

    @property
    def stats(self) -> dict:
        return {"fragments": self._fragment_count, "mode_switches": self._switch_count}
