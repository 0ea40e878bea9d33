import re
from typing import Iterable, List

MENTION_PATTERN = re.compile(r"@ai\b\s*", re.IGNORECASE)

# Spans that are never highlighted: fenced code, inline code, display and
# inline math, and existing [[...]] highlights. Longer delimiters come first.
PROTECTED_SPAN = re.compile(
    r"(```[\s\S]*?```"
    r"|`[^`\n]*`"
    r"|\$\$[\s\S]*?\$\$"
    r"|\$[^$\n]+\$"
    r"|\[\[.*?\]\])"
)

MIN_TERM_LENGTH = 3


def strip_mentions(text: str) -> str:
    """Remove @ai mentions from a question or an answer"""
    if not text:
        return ""
    return MENTION_PATTERN.sub("", text).strip()


def _ordered_terms(terms: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for term in terms:
        if not term:
            continue
        term = term.strip()
        key = term.lower()
        if len(term) < MIN_TERM_LENGTH or key in seen:
            continue
        seen.add(key)
        ordered.append(term)

    # Longest first so "machine learning" wins over "learning"
    ordered.sort(key=lambda t: (-len(t), t.lower()))
    return ordered


def _term_pattern(term: str) -> re.Pattern:
    # Lookarounds instead of \b so terms like "C++" still match as whole words
    return re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)", re.IGNORECASE)


def _wrap_outside_protected(text: str, pattern: re.Pattern) -> str:
    parts = PROTECTED_SPAN.split(text)
    for i, part in enumerate(parts):
        # Odd indexes are the captured code, math and highlight spans
        if i % 2 == 1:
            continue
        parts[i] = pattern.sub(lambda m: f"[[{m.group(0)}]]", part)
    return "".join(parts)


def highlight(text: str, terms: Iterable[str]) -> str:
    """Wrap whole-word occurrences of each term in [[...]], leaving code and math untouched"""
    for term in _ordered_terms(terms):
        text = _wrap_outside_protected(text, _term_pattern(term))
    return text


def finalize(answer: str, highlight_terms: Iterable[str] = ()) -> str:
    """
    Clean up a generated answer before it is streamed.

    Mentions are stripped, then academic terms are highlighted. Running
    finalize on its own output returns the same text.
    """
    cleaned = strip_mentions(answer)
    if not cleaned:
        return cleaned
    return highlight(cleaned, highlight_terms or [])
