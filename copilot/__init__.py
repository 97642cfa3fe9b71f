"""
Interview Copilot - Source Package

Listens to a live conversation, turns the transcript into utterances and
answers them with Gemini while the conversation is still going.

This package provides:
- Transcript aggregation and mode switching by voice
- Timed, single-flight dispatch of utterances
- Lexical intent classification (technical, output evaluation)
- Two bounded conversation histories (interview and QA)
- CLI and HTTP interfaces
"""

__version__ = "1.0.0"

from copilot.config import settings

__all__ = ["settings", "__version__"]
