import pytest

from app.models.schemas import ContextBundle, CourseContext, QueryType
from app.services.prompt_builder import (
    COMPLEXITY_INSTRUCTIONS, SUBJECT_INSTRUCTIONS, build, detect_complexity, detect_subject,
)


@pytest.mark.parametrize("question, expected", [
    ("How do I find the derivative of x^2?", "mathematics"),
    ("Why do cells divide?", "science"),
    ("How does a database index speed up queries?", "computer_science"),
    ("What caused the fall of the Roman Empire?", "history"),
    ("Who is the author of Beloved?", "literature"),
    ("How does inflation affect the stock market?", "economics"),
    ("Tell me about cognitive biases", "psychology"),
    ("Is morality objective?", "philosophy"),
    ("How do I start painting landscapes?", "art"),
    ("What are the symptoms of this disease?", "medicine"),
    ("How does the court decide appeals?", "law"),
    ("Plan a weekend trip", "general"),
    ("Can you explain AI?", "computer_science"),
    ("Tell me about the civil war.", "history"),
    ("I love art.", "art"),
])
def test_detect_subject(question, expected):
    assert detect_subject(question) == expected


def test_subject_keywords_do_not_match_inside_words():
    # "explain" contains "ai" and "start" contains "art"
    assert detect_subject("explain why we start early") == "general"


@pytest.mark.parametrize("question, expected", [
    ("Give me an advanced treatment of entropy", "advanced"),
    ("Explain how vaccines work", "intermediate"),
    ("Define osmosis", "basic"),
    ("Tell me about volcanoes", "intermediate"),
])
def test_detect_complexity(question, expected):
    assert detect_complexity(question) == expected


def test_instruction_tables_are_immutable():
    with pytest.raises(TypeError):
        SUBJECT_INSTRUCTIONS["general"] = "changed"
    with pytest.raises(TypeError):
        COMPLEXITY_INSTRUCTIONS["basic"] = "changed"


def test_simple_question_uses_compact_prompt():
    bundle = ContextBundle(label="Biology study group")

    prompt = build("hello", QueryType.SHORT_ANSWER, bundle)

    assert "<think>" in prompt
    assert "Biology study group" not in prompt
    assert "LaTeX formatting unless" in prompt


def test_arithmetic_uses_math_prompt():
    prompt = build("what is 3+5?", QueryType.SHORT_ANSWER, ContextBundle())

    assert "math question" in prompt
    assert "\\boxed{}" in prompt
    assert "<think>" in prompt


def test_code_prompt_requires_fenced_blocks():
    prompt = build("Write python code to sort a list", QueryType.CODE, ContextBundle())

    assert "```python" in prompt
    assert "NEVER output code outside a code block" in prompt
    assert "NEVER mix different languages" in prompt


def test_general_prompt_includes_subject_complexity_and_context():
    bundle = ContextBundle(course=CourseContext(course_name="Intro to Psychology", professor="Dr. Lee"))
    question = "Explain how memory works in cognitive psychology"

    prompt = build(question, QueryType.ESSAY, bundle)

    assert question in prompt
    assert SUBJECT_INSTRUCTIONS["psychology"] in prompt
    assert COMPLEXITY_INSTRUCTIONS["intermediate"] in prompt
    assert "Intro to Psychology" in prompt
    assert "Dr. Lee" in prompt
    assert "<think>" in prompt


def test_build_without_bundle():
    prompt = build("Describe the water cycle process in detail", QueryType.ESSAY)

    assert "Current date and time" not in prompt
