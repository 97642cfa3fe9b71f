"""Simple message lookup for advisory text shown to the user.

Sinks (CLI printer, HTTP API) render these instead of hard-coding strings.
"""

from __future__ import annotations

_MESSAGES: dict[str, str] = {
    "mode.interview": "Mode: interview",
    "mode.qa": "Mode: QA (code)",
    "status.connected": "Status: connected, listening...",
    "status.disconnected": "Status: disconnected",
    "status.stopped": "Stopped",
    "status.asking": "Asking Gemini...",
    "error.gemini_key_missing": "Gemini API key missing. Set GEMINI_API_KEY or pass it when starting.",
    "error.assembly_key_missing": "AssemblyAI API key missing. Set ASSEMBLYAI_API_KEY or pass it when starting.",
    "error.ask_in_progress": "Please wait for the current request to complete.",
    "error.empty_question": "Please enter a question.",
    "error.no_session": "No active session. Start a session first.",
    "error.rate_limited": "Too many requests. Please try again later.",
}


def msg(key: str) -> str:
    """Return a message by key, or the key itself if not found."""
    return _MESSAGES.get(key, key)


def mode_label(mode: str) -> str:
    """Return the status line for a mode value ("interview" or "qa")."""
    return msg(f"mode.{mode}")
