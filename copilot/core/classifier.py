"""
Intent Classifier Module

Decides what kind of answer an utterance needs, using lexical heuristics only
(no model call):
- Output evaluation: "what does this print?" or a bare print/log call
- Technical: a request for code, SQL, or framework-specific work
- General: everything else

All functions are pure and case-insensitive, so they can be table-tested.

Usage:
    from copilot.core.classifier import classify

    result = classify("write a function to reverse a string")
    result.is_technical   # True
    result.intent         # "technical"
"""

import re
from dataclasses import dataclass
from typing import List, Pattern, Tuple

_FLAGS = re.IGNORECASE | re.MULTILINE

ACTION_VERBS = r"(?:write|show|give|create|generate|build|make|provide|implement)"

# Verbs that ask for something to be built, not described
BUILD_VERBS = r"(?:write|create|generate|build|make|implement|develop|code)"

LANGUAGE_NAMES = (
    r"python|javascript|typescript|java|c\+\+|c#|golang|rust|ruby|php|kotlin|swift|scala"
    r"|sql|bash|html|css|node\.?js|react|angular|vue|django|flask|fastapi|spring"
)

TECHNICAL_NOUNS = (
    r"code|snippet|function|method|class|program|script|algorithm|regex|query"
    r"|linked list|binary tree|hash ?map|array|module|" + LANGUAGE_NAMES
)

# Print/log calls across common languages
_PRINT_CALLS: List[Pattern] = [
    re.compile(p, _FLAGS) for p in (
        r"console\.log\s*\(",
        r"\bprint\s*\(",
        r"system\.out\.print(?:ln)?\s*\(",
        r"console\.write(?:line)?\s*\(",
        r"\bprintf\s*\(",
        r"\bcout\s*<<",
        r"\bfmt\.print(?:ln|f)?\s*\(",
        r"^\s*puts\s+\S",
        r"^\s*echo\s+['\"$]",
    )
]

_OUTPUT_PHRASES: List[Pattern] = [
    re.compile(p, _FLAGS) for p in (
        r"\bwhat(?: i|')s the output\b",
        r"\bwhat will (?:this|that|it|the code|the following)\s+(?:log|print|output|return)\b",
        r"\bwhat does (?:this|that|it|the code|the following)\s+(?:log|print|output)\b",
        r"\boutput of\b",
    )
]

_VERB_NOUN = re.compile(
    rf"\b{ACTION_VERBS}\b[^.?!]{{0,40}}?\b(?:{TECHNICAL_NOUNS})(?![\w+#])",
    _FLAGS,
)
_PROGRAM_TO = re.compile(r"\b(?:program|script)\s+to\b", _FLAGS)

_SQL_PATTERNS: List[Pattern] = [
    re.compile(p, _FLAGS) for p in (
        r"\bsql\b",
        r"\bselect\s+(?:distinct\s+)?(?:[\w.()*]+(?:\s*,\s*[\w.()*]+)*)\s+from\s+\w",
        r"\b(?:inner|left|right|full|outer|cross)\s+join\b",
        r"\bgroup\s+by\b",
        r"\border\s+by\b",
        r"\b(?:insert\s+into|delete\s+from|update\s+\w+\s+set|create\s+table)\b",
        r"\b(?:second|third|fourth|fifth|nth|\d+(?:st|nd|rd|th))\s+(?:highest|lowest|largest|smallest)\b",
    )
]

_DATA_RETRIEVAL = re.compile(
    r"\b(?:find|fetch|retrieve|list|select|display|count|query|show)\b[^.?!]{0,50}?"
    r"\b(?:salary|salaries|employees?|departments?|tables?|rank(?:ing)?|records|rows|columns|database)\b"
    # followed by a query-shaped qualifier
    r"[^.?!]{0,40}?\b(?:from|where|whose|having|per|by|each|table|above|below|greater|less|more than)\b",
    _FLAGS,
)

_CODE_SYNTAX: List[Pattern] = [
    re.compile(p, _FLAGS) for p in (
        r"\bdef\s+\w+\s*\(",
        r"\bfunction\s*\w*\s*\([^)]*\)",
        r"\([^()]*\)\s*=>",
        r"\b(?:const|let|var)\s+\w+\s*=",
        r"#include\s*<",
        r"\bpublic\s+(?:static\s+)?(?:void|class|int|string)\b",
        r"^\s*import\s+(?:[\w.]+\s*;?\s*$|\{|\*\s+as\s|\w+\s+from\s+['\"])",
        r"\bfrom\s+[\w.]+\s+import\s+\w+",
        r"\b[a-z_]\w*\.[a-z_]\w*\s*\(",
        r"\breturn\s+[^;\n]+;",
        r"\b(?:for|while|if)\s*\(.*\)\s*\{",
        r"\{[^{}]*;[^{}]*\}",
    )
]

_FRONTEND = (
    r"react|jsx|usestate|useeffect|props|angular|vue|svelte|component|frontend|front-end"
    r"|navbar|dom|css|html|tailwind"
)
_BACKEND = (
    r"rest api|api|endpoint|server|express|django|flask|fastapi|spring boot|middleware"
    r"|route|routing|microservice|crud|backend|back-end|database schema"
)
_FRAMEWORK_REQUEST = re.compile(
    rf"\b{BUILD_VERBS}\b[^.?!]{{0,40}}?\b(?:{_FRONTEND}|{_BACKEND})\b",
    _FLAGS,
)

_GENERIC_CODE = re.compile(r"\b(?:code|function|class|js|javascript|python)\b", _FLAGS)

# Ordered: more specific names first (javascript before java)
_LANGUAGES: List[Tuple[Pattern, str]] = [
    (re.compile(p, _FLAGS), name) for p, name in (
        (r"c\+\+|\bcpp\b", "C++"),
        (r"c#|\bc sharp\b|\bcsharp\b", "C#"),
        (r"\btypescript\b|\bts\b", "TypeScript"),
        (r"\bjavascript\b|\bjs\b|\bnode(?:\.?js)?\b|\breact\b|\bangular\b|\bvue\b|console\.log|\bexpress\b", "JavaScript"),
        (r"\bjava\b|system\.out", "Java"),
        (r"\bpython\b|\bpy\b|\bdjango\b|\bflask\b|\bfastapi\b|\bdef\s+\w+\s*\(", "Python"),
        (r"\bgolang\b|\bin go\b|\bgo (?:code|program|function)\b|fmt\.print", "Go"),
        (r"\brust\b", "Rust"),
        (r"\bruby\b|\brails\b", "Ruby"),
        (r"\bphp\b|\blaravel\b", "PHP"),
        (r"\bkotlin\b", "Kotlin"),
        (r"\bswift (?:code|function|program)\b|\bin swift\b|\bswiftui\b", "Swift"),
        (r"\bscala\b", "Scala"),
        (r"\bbash\b|\bshell script\b", "Bash"),
        (r"\bhtml\b", "HTML"),
        (r"\bcss\b", "CSS"),
    )
]


@dataclass(frozen=True)
class ClassificationResult:
    """
    Outcome of classifying one utterance.

    Attributes:
        is_output_eval: Asks what a snippet prints/logs
        is_technical: Asks for code (evaluated in interview mode only)
        language: Programming language hint found in the text, if any
    """
    is_output_eval: bool = False
    is_technical: bool = False
    language: str = ""

    @property
    def intent(self) -> str:
        """Single label, output evaluation taking precedence."""
        if self.is_output_eval:
            return "output_eval"
        if self.is_technical:
            return "technical"
        return "general"


def is_output_intent(text: str) -> bool:
    """Detect a print/log call or phrasing that asks for a program's output."""
    if not text:
        return False
    t = text.strip()
    return any(p.search(t) for p in _PRINT_CALLS) or any(p.search(t) for p in _OUTPUT_PHRASES)


_LOG_WORDS = re.compile(
    r"console\.log|system\.out\.println|console\.writeline|cout\s*<<|\b(?:log|print|printf|println|echo)\b",
    _FLAGS,
)


def is_log_intent(text: str) -> bool:
    """Detect a question about logging or printing, call syntax or not."""
    if not text:
        return False
    return bool(_LOG_WORDS.search(text))


def is_sql_intent(text: str) -> bool:
    """Detect SQL keywords or a data-retrieval request over tabular nouns."""
    if not text:
        return False
    return any(p.search(text) for p in _SQL_PATTERNS) or bool(_DATA_RETRIEVAL.search(text))


def has_code_syntax(text: str) -> bool:
    """Detect an unambiguous source-code fragment."""
    if not text:
        return False
    return any(p.search(text) for p in _CODE_SYNTAX)


def is_technical_request(text: str) -> bool:
    """Detect a request that should be answered with code."""
    if not text:
        return False
    return bool(
        _VERB_NOUN.search(text)
        or _PROGRAM_TO.search(text)
        or is_sql_intent(text)
        or has_code_syntax(text)
        or _FRAMEWORK_REQUEST.search(text)
    )


def is_code_question(text: str) -> bool:
    """Looser code detection used for typed questions."""
    if not text:
        return False
    return bool(_GENERIC_CODE.search(text)) or is_technical_request(text)


def detect_language(text: str) -> str:
    """Return the programming language named or implied by the text, or ''."""
    if not text:
        return ""
    for pattern, name in _LANGUAGES:
        if pattern.search(text):
            return name
    if is_sql_intent(text):
        return "SQL"
    return ""


def classify(text: str, evaluate_technical: bool = True) -> ClassificationResult:
    """
    Classify an utterance.

    Args:
        text: Utterance or typed question
        evaluate_technical: Whether to run the technical checks (interview mode)

    Returns:
        ClassificationResult for the text
    """
    if not isinstance(text, str) or not text.strip():
        return ClassificationResult()

    technical = evaluate_technical and is_technical_request(text)
    output_eval = is_output_intent(text)
    language = detect_language(text) if (technical or output_eval) else ""

    return ClassificationResult(
        is_output_eval=output_eval,
        is_technical=technical,
        language=language,
    )
