from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.schemas import ChatRequest, CourseContext
from app.services.answer_engine import AnswerEngine
from app.services.context_assembler import ContextAssembler
from app.services.orchestrator import AnswerOrchestrator
from app.services.providers import AIProvider


class RecordingProvider(AIProvider):
    name = "recording"

    def __init__(self, reply):
        super().__init__()
        self.reply = reply
        self.prompts = []
        self.budgets = []

    async def complete(self, prompt, max_tokens, **flags):
        self.prompts.append(prompt)
        self.budgets.append(max_tokens)
        return self.reply


def make_engine(provider):
    profile_store = MagicMock()
    profile_store.get_profile = AsyncMock(return_value=None)
    search_client = MagicMock()
    search_client.search = AsyncMock()
    assembler = ContextAssembler(profile_store=profile_store, search_client=search_client)
    return AnswerEngine(assembler=assembler, orchestrator=AnswerOrchestrator([provider]))


@pytest.mark.asyncio
async def test_answer_runs_full_pipeline():
    provider = RecordingProvider("@ai Genetics is the study of how traits pass from parents to offspring through genes.")
    engine = make_engine(provider)
    request = ChatRequest(
        question="@ai Explain genetics for my course",
        courseData=CourseContext(course_name="Intro to Biology", topics=["Genetics"]),
    )

    result = await engine.answer(request)

    assert result.provider == "recording"
    assert result.answer.startswith("[[Genetics]] is the study")
    assert "@ai" not in result.answer
    assert "@ai" not in provider.prompts[0]
    assert "Intro to Biology" in provider.prompts[0]
    assert provider.budgets == [1500]


@pytest.mark.asyncio
async def test_code_questions_get_largest_budget():
    provider = RecordingProvider("```python\nprint('hello world')\n```\nThis prints a greeting to the console.")
    engine = make_engine(provider)

    await engine.answer(ChatRequest(question="write python code that prints hello"))

    assert provider.budgets == [2048]
    assert "```python" in provider.prompts[0]


@pytest.mark.asyncio
async def test_short_provider_answer_falls_back():
    engine = make_engine(RecordingProvider("ok"))

    result = await engine.answer(ChatRequest(question="hello"))

    assert result.provider == "fallback"
    assert result.answer.startswith("Hey there!")
