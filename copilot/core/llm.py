"""
LLM Message and Prompt Module

Shared building blocks for talking to the generative model:
- Role/Turn: one entry of a conversation, in Gemini's contents format
- build_generate_payload / extract_reply_text: request and response shapes
- Prompt templates for interview, technical, output-evaluation and manual asks

Usage:
    from copilot.core.llm import Turn, Role, build_generate_payload

    turns = [Turn(Role.USER, "Interviewer: Tell me about yourself")]
    payload = build_generate_payload(turns, settings.gemini)
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence

from copilot.config import GeminiConfig


class Role(str, Enum):
    """Speaker of a turn. Gemini only knows 'user' and 'model'."""
    USER = "user"
    MODEL = "model"


@dataclass(frozen=True)
class Turn:
    """
    Represents one conversation turn.

    Attributes:
        role: Who produced the text
        text: Turn content
    """
    role: Role
    text: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a Gemini `contents` entry."""
        return {"role": self.role.value, "parts": [{"text": self.text}]}

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(Role.USER, text)

    @classmethod
    def model(cls, text: str) -> "Turn":
        return cls(Role.MODEL, text)


def build_generate_payload(turns: Sequence[Turn], config: GeminiConfig) -> Dict[str, Any]:
    """
    Build the JSON body for a generateContent call.

    Args:
        turns: Ordered conversation turns
        config: Generation settings (bounded output, low randomness)

    Returns:
        Request body dictionary
    """
    return {
        "contents": [t.to_dict() for t in turns],
        "generationConfig": {
            "thinkingConfig": {"thinkingBudget": config.thinking_budget},
            "maxOutputTokens": config.max_output_tokens,
            "temperature": config.temperature,
            "topP": config.top_p,
            "topK": config.top_k,
        },
    }


def extract_reply_text(data: Dict[str, Any]) -> str:
    """
    Pull the reply text out of a generateContent response.

    Falls back to the legacy `candidates[0].text` shape, then to the raw
    JSON so an unexpected body is still visible to the user.
    """
    candidates = data.get("candidates") or []
    if candidates and isinstance(candidates[0], dict):
        first = candidates[0]
        parts = (first.get("content") or {}).get("parts") or []
        if parts and isinstance(parts[0], dict) and parts[0].get("text"):
            return parts[0]["text"]
        if first.get("text"):
            return first["text"]
    return json.dumps(data)


# ============================================================================
# Prompt templates
# ============================================================================

INTERVIEW_SYSTEM_PROMPT = (
    "You are my interview assistant. Always generate short, direct, professional "
    "first-person answers (3-4 sentences max). Do not explain, repeat the question, "
    "or add extra context. Only give the answer."
)

QA_SYSTEM_PROMPT = (
    "You are a helpful coding and general knowledge assistant. Provide clear "
    "explanations and complete working code if asked. For code, use markdown code "
    "blocks with language specification. Be concise but thorough in explanations."
)

INTERVIEW_ANSWER_TEMPLATE = """The interviewer just asked: "{question}"

Provide a concise, professional response in first person (2-3 sentences max). Be direct and avoid saying things like "I would say" or "I think". Focus on your experience and skills relevant to the question."""

TECHNICAL_ANSWER_TEMPLATE = """The interviewer asked for a technical answer: "{question}"

Always answer in this order:
1. A short explanation (1-3 sentences) of the approach.
2. A complete, runnable fenced code block written in {language}, opening with ```{fence_tag}.

Do not skip the code block, even for simple requests. Keep the code minimal and correct."""

OUTPUT_EVAL_TEMPLATE = """Analyze the following snippet and state the final output it produces.
Respond in plain text only (no code blocks). Use this format:

Output: <the exact output as shown by the program>
Reason: <one or two short sentences explaining why>

Snippet:
{snippet}"""

MANUAL_CODE_TEMPLATE = """You are a helpful coding assistant. Provide BOTH a brief explanation (1-3 sentences, include expected console output if applicable) and then a fenced code block. Use this exact format:

Explanation:
<one short paragraph that also states the expected console output if it makes sense>

Code:
```
<code here>
```

Ensure the code is complete and runnable.

Request: {question}"""


def interview_user_text(question: str) -> str:
    """Text of the user turn recorded for an interviewer utterance."""
    return f"Interviewer: {question}"


def format_technical_prompt(question: str, language: str = "") -> str:
    """Build the technical instruction turn for the minimal-context path."""
    return TECHNICAL_ANSWER_TEMPLATE.format(
        question=question,
        language=language or "the most appropriate language for the request",
        fence_tag=_fence_tag(language),
    )


def format_output_eval_prompt(snippet: str) -> str:
    """Build the Output/Reason instruction for output-evaluation requests."""
    return OUTPUT_EVAL_TEMPLATE.format(snippet=snippet)


def _fence_tag(language: str) -> str:
    tags = {"c++": "cpp", "c#": "csharp", "javascript": "javascript", "typescript": "typescript"}
    lang = language.lower()
    if not lang:
        return "<language>"
    return tags.get(lang, lang.replace(" ", ""))
