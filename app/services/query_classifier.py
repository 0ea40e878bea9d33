import re
from types import MappingProxyType
from typing import Callable, Tuple

from app.models.schemas import QueryType

# Anything that looks like a request for code or names a programming language
CODE_PATTERN = re.compile(
    r"write.*code|create.*code|show.*code|generate.*code|code.*in|python|javascript|java|c\+\+|html|css|sql",
    re.IGNORECASE,
)

SHORT_FACT_PATTERNS = [
    re.compile(r"^what is [a-z\s]+[^?]*\??$", re.IGNORECASE),
    re.compile(r"^who is [a-z\s]+[^?]*\??$", re.IGNORECASE),
    re.compile(r"^when did [a-z\s]+[^?]*\??$", re.IGNORECASE),
    re.compile(r"^where is [a-z\s]+[^?]*\??$", re.IGNORECASE),
]

ESSAY_PATTERN = re.compile(r"explain|analyze|compare|contrast|discuss|evaluate|describe.*process|how.*work", re.IGNORECASE)

REASONING_PATTERN = re.compile(r"solve|calculate|find|prove|show.*that|why|how.*do", re.IGNORECASE)

TOKEN_BUDGETS = MappingProxyType({
    QueryType.SHORT_ANSWER: 256,
    QueryType.REASONING: 768,
    QueryType.ESSAY: 1500,
    QueryType.CODE: 2048,
})

# Topics that look like "what is X" but deserve the full prompt
COMPLEX_TOPICS = (
    "quantum", "thermodynamics", "calculus", "philosophy", "economics",
    "psychology", "machine learning", "artificial intelligence", "neural",
    "organic chemistry", "molecular", "atomic", "nuclear", "relativity",
    "evolution", "photosynthesis", "mitosis", "meiosis", "ecosystem",
    "macroeconomics", "microeconomics", "statistical", "hypothesis",
    "thesis", "research", "analysis", "methodology", "framework",
)

SIMPLE_QUESTION_PATTERNS = [
    re.compile(r"^what is \d+[x+\-*/]\d+\??$", re.IGNORECASE),  # "what is 3x+2?"
    re.compile(r"^what is \d+\??$", re.IGNORECASE),
    re.compile(r"^what is \d+\s*[+\-*/]\s*\d+\??$", re.IGNORECASE),  # "what is 3 + 2?"
    re.compile(r"^solve\s+\w+\^?\d*[+\-*/]?\d*\s*=\s*\d+\??$", re.IGNORECASE),  # "solve x^2=4"
    re.compile(r"^calculate\s+\d+[+\-*/]\d+\??$", re.IGNORECASE),
    re.compile(r"^@?ai\s*(what is|what's|solve|calculate)\s*[\d+\-*/^=]", re.IGNORECASE),
    re.compile(r"^[\d+\-*/^=\s]+$"),  # bare arithmetic like "3+5"
    re.compile(r"^(hello|hi|hey)[!.]?$", re.IGNORECASE),
    re.compile(r"^(thanks?|thank you)[!.]?$", re.IGNORECASE),
    re.compile(r"^how are you\??$", re.IGNORECASE),
    re.compile(r"^good (morning|afternoon|evening)[!.]?$", re.IGNORECASE),
    re.compile(r"^what's up\??$", re.IGNORECASE),
    re.compile(r"^how's it going\??$", re.IGNORECASE),
    re.compile(r"^who are you\??$", re.IGNORECASE),
]

PURE_MATH_PATTERN = re.compile(r"^(what is|solve|calculate|find|derivative|integral)\s+.*[\d+\-*/^=].*$", re.IGNORECASE)

SCIENCE_TEXT_PATTERN = re.compile(
    r"biology|chemistry|physics|science|photosynthesis|respiration|reaction|molecule|atom|cell",
    re.IGNORECASE,
)

ARITHMETIC_PATTERNS = [
    re.compile(r"^@?ai\s*(what is|what's|solve|calculate)\s*[\d+\-*/^=]", re.IGNORECASE),
    re.compile(r"^[\d+\-*/^=\s]+$"),
    re.compile(r"^what is \d+[+\-*/]\d+", re.IGNORECASE),
]


def is_code_question(question: str) -> bool:
    return bool(CODE_PATTERN.search(question))


def _is_short_fact(question: str) -> bool:
    return any(pattern.match(question) for pattern in SHORT_FACT_PATTERNS)


# Evaluated in order, first match wins. Code has to come first because
# "what is a python list" is both a code and a short-fact question.
CLASSIFICATION_RULES: Tuple[Tuple[Callable[[str], bool], QueryType], ...] = (
    (is_code_question, QueryType.CODE),
    (_is_short_fact, QueryType.SHORT_ANSWER),
    (lambda q: bool(ESSAY_PATTERN.search(q)), QueryType.ESSAY),
    (lambda q: bool(REASONING_PATTERN.search(q)), QueryType.REASONING),
)


def classify(question: str) -> QueryType:
    """Assign a query type used to bound output length and pick a template"""
    normalized = question.lower().strip()
    for predicate, query_type in CLASSIFICATION_RULES:
        if predicate(normalized):
            return query_type
    return QueryType.SHORT_ANSWER


def token_budget(query_type: QueryType) -> int:
    return TOKEN_BUDGETS[query_type]


def is_simple_question(question: str) -> bool:
    """
    Recognise trivial arithmetic, greetings and basic definitions that can
    skip subject/complexity detection and use the compact prompt.
    """
    stripped = question.strip()
    normalized = stripped.lower()

    if is_code_question(normalized):
        return False

    if SHORT_FACT_PATTERNS[0].match(normalized):
        return not any(topic in normalized for topic in COMPLEX_TOPICS)

    return any(pattern.match(stripped) for pattern in SIMPLE_QUESTION_PATTERNS)


def is_math_question(question: str) -> bool:
    """True for arithmetic or pure math, False for science text that happens to contain numbers"""
    normalized = question.lower().strip()

    is_pure_math = bool(PURE_MATH_PATTERN.match(normalized)) and not SCIENCE_TEXT_PATTERN.search(normalized)
    is_arithmetic = any(pattern.match(normalized) for pattern in ARITHMETIC_PATTERNS)
    return is_pure_math or is_arithmetic
