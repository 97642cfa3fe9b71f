"""
Core Module Package

Pure building blocks with no I/O:
- LLM: turn types, request/response shapes, prompt templates
- Classifier: lexical intent heuristics
- Formatting: reply cleaning and code/explanation splitting
"""

from copilot.core.llm import Role, Turn, build_generate_payload, extract_reply_text
from copilot.core.classifier import ClassificationResult, classify, is_code_question
from copilot.core.formatting import trim_reply, split_explanation_and_code, ReplyParts

__all__ = [
    "Role",
    "Turn",
    "build_generate_payload",
    "extract_reply_text",
    "ClassificationResult",
    "classify",
    "is_code_question",
    "trim_reply",
    "split_explanation_and_code",
    "ReplyParts",
]
