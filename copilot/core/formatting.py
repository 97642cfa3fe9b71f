"""
Reply Formatting Helpers

Post-processing of model replies before they are stored or displayed.
"""

import re
from typing import NamedTuple, Optional

_FENCE_BLOCK = re.compile(r"```[\w+#.-]*[ \t]*\n([\s\S]*?)```")
_LEADING_FENCE = re.compile(r"^```[\w+#.-]*[ \t]*(?:\n|$)")
_TRAILING_FENCE = re.compile(r"```\s*$")
_BOLD = re.compile(r"\*\*|__")


class ReplyParts(NamedTuple):
    """A reply split around its first fenced code block."""
    explanation: str
    code: str


def trim_reply(text: Optional[str]) -> str:
    """
    Clean a conversational reply for display.

    Strips surrounding whitespace, a single leading and trailing fence
    delimiter line when the whole reply is wrapped in one block, and bold
    markers. Only meant for non-technical answers: fenced code inside the
    reply would lose its delimiters.
    """
    if not text:
        return ""
    result = text.strip()
    if result.startswith("```") and result.endswith("```") and len(result) >= 6:
        result = _LEADING_FENCE.sub("", result, count=1)
        result = _TRAILING_FENCE.sub("", result, count=1)
        result = result.strip()
    return _BOLD.sub("", result).strip()


def split_explanation_and_code(text: Optional[str]) -> ReplyParts:
    """
    Split a reply into the explanation before the first fence and the code
    inside it. Replies without a fence come back as explanation only.
    """
    if not text:
        return ReplyParts("", "")
    match = _FENCE_BLOCK.search(text)
    if not match:
        return ReplyParts(text.strip(), "")
    explanation = text[:match.start()].strip()
    # "Explanation:" / "Code:" labels come from the manual code template
    explanation = re.sub(r"^explanation:\s*", "", explanation, flags=re.IGNORECASE)
    explanation = re.sub(r"\n?\s*code:\s*$", "", explanation, flags=re.IGNORECASE).strip()
    return ReplyParts(explanation, match.group(1))
