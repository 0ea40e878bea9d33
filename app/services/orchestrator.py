import asyncio
import re
import time
from typing import Callable, List, Optional, Sequence, Tuple

from app.core.config import settings
from app.core.logging import get_logger
from app.models.schemas import ContextBundle, ProviderResult
from app.services.providers import AIProvider, ProviderNotConfiguredError, build_providers

logger = get_logger(__name__)

FALLBACK_PROVIDER = "fallback"

SYNTHETIC_THOUGHTS = (
    "Analyzing the question to understand what is being asked",
    "Recalling relevant concepts and course context",
    "Planning a clear, step-by-step explanation",
    "Structuring the answer so it is easy to follow",
)
SYNTHETIC_SUMMARY = "Worked out what was asked, then planned and structured the answer."

GREETING_PATTERN = re.compile(r"\b(hello|hi|hey)\b", re.IGNORECASE)
IDENTITY_PATTERN = re.compile(r"who are you", re.IGNORECASE)
PROFESSOR_PATTERN = re.compile(r"\b(professor|instructor|teacher|who teaches)\b", re.IGNORECASE)
COURSE_PATTERN = re.compile(r"what is this (course|class)|what('s| is) the course|what course", re.IGNORECASE)
ASSIGNMENT_PATTERN = re.compile(r"\b(assignments?|homework|due)\b", re.IGNORECASE)
EXAM_PATTERN = re.compile(r"\b(exams?|midterms?|finals?|tests?|quiz)\b", re.IGNORECASE)
NEWS_PATTERN = re.compile(r"\b(news|current)\b", re.IGNORECASE)

GENERIC_APOLOGY = (
    "That's an interesting question! I'd normally chat about this with you, but I'm having some "
    "technical issues right now. Want to talk about academics, ask about homework, or try asking "
    "something else? I'm here to help once we get this sorted out!"
)


def _course_name(bundle: ContextBundle) -> str:
    course = bundle.course
    return course.course_name or course.course_code or "this course"


def _snippet_summary(question: str, bundle: ContextBundle) -> Optional[str]:
    if not bundle.current_info or not bundle.current_info.content:
        return None
    return (
        f"Based on what I found: {bundle.current_info.content[:300]}...\n\n"
        "That's the latest info I could find on this topic. Want to dive deeper into any specific aspect?"
    )


def _greeting(question: str, bundle: ContextBundle) -> Optional[str]:
    if not GREETING_PATTERN.search(question):
        return None
    return (
        "Hey there! I'm CourseConnect AI, your friendly study buddy! I'm here to help with academics, "
        "homework questions, study strategies, or just chat about whatever's on your mind. What's up today?"
    )


def _identity(question: str, bundle: ContextBundle) -> Optional[str]:
    if not IDENTITY_PATTERN.search(question):
        return None
    return (
        "I'm CourseConnect AI, your friendly study buddy! CourseConnect is a unified platform for college "
        "students, and I'm here to help you with your studies, answer questions, or just chat. What's up?"
    )


def _professor(question: str, bundle: ContextBundle) -> Optional[str]:
    if not bundle.course or not bundle.course.professor or not PROFESSOR_PATTERN.search(question):
        return None
    return (
        f"Your professor for {_course_name(bundle)} is {bundle.course.professor}. "
        "Let me know if you want help preparing questions for office hours!"
    )


def _course_overview(question: str, bundle: ContextBundle) -> Optional[str]:
    if not bundle.course or not COURSE_PATTERN.search(question):
        return None
    answer = f"This chat is for {_course_name(bundle)}"
    if bundle.course.professor:
        answer += f", taught by {bundle.course.professor}"
    answer += "."
    if bundle.course.topics:
        answer += f" Topics include {', '.join(bundle.course.topics[:8])}."
    return answer + " What would you like to dig into?"


def _assignments(question: str, bundle: ContextBundle) -> Optional[str]:
    if not bundle.course or not bundle.course.assignments or not ASSIGNMENT_PATTERN.search(question):
        return None
    lines = [
        f"- {a.name}" + (f" (due {a.due_date})" if a.due_date else "")
        for a in bundle.course.assignments
    ]
    return f"Here are the assignments for {_course_name(bundle)}:\n" + "\n".join(lines) + \
        "\n\nWant help getting started on any of them?"


def _exams(question: str, bundle: ContextBundle) -> Optional[str]:
    if not bundle.course or not bundle.course.exams or not EXAM_PATTERN.search(question):
        return None
    lines = [f"- {e.name}" + (f" ({e.date})" if e.date else "") for e in bundle.course.exams]
    return f"Here are the exams for {_course_name(bundle)}:\n" + "\n".join(lines) + \
        "\n\nWant to put together a study plan?"


def _news(question: str, bundle: ContextBundle) -> Optional[str]:
    if not NEWS_PATTERN.search(question):
        return None
    return (
        "I'd love to help with current events! Unfortunately I'm having trouble accessing real-time info "
        "right now. Feel free to ask me about academic topics, or try asking about a specific story."
    )


# Tried in order when every provider has failed; the generic apology is the last resort
FALLBACK_RULES: Tuple[Callable[[str, ContextBundle], Optional[str]], ...] = (
    _snippet_summary,
    _greeting,
    _identity,
    _professor,
    _course_overview,
    _assignments,
    _exams,
    _news,
)


class AnswerOrchestrator:
    """Tries each provider in priority order and falls back to canned answers"""

    def __init__(self, providers: Optional[Sequence[AIProvider]] = None,
                 min_answer_length: Optional[int] = None,
                 timeout_seconds: Optional[float] = None):
        self.providers: List[AIProvider] = list(providers) if providers is not None else build_providers()
        self.min_answer_length = min_answer_length if min_answer_length is not None else settings.MIN_ANSWER_LENGTH
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.PROVIDER_TIMEOUT_SECONDS

    @property
    def provider_names(self) -> List[str]:
        return [provider.name for provider in self.providers]

    async def aclose(self):
        for provider in self.providers:
            await provider.aclose()

    def _validate(self, result) -> bool:
        """An answer counts only if it is text longer than the minimum length"""
        if result is None or not isinstance(result, ProviderResult):
            return False
        if not isinstance(result.answer, str):
            return False
        return len(result.answer) > self.min_answer_length

    async def _try_providers(self, prompt: str, max_tokens: int, *,
                             thinking_mode: bool = False, needs_search: bool = False) -> Optional[ProviderResult]:
        for provider in self.providers:
            start_time = time.time()
            try:
                result = await asyncio.wait_for(
                    provider.generate(prompt, max_tokens, thinking_mode=thinking_mode, needs_search=needs_search),
                    timeout=self.timeout_seconds,
                )
            except ProviderNotConfiguredError:
                logger.info(f"Skipping {provider.name}: not configured")
                continue
            except asyncio.TimeoutError:
                logger.warning(f"{provider.name} timed out after {self.timeout_seconds}s")
                continue
            except Exception as e:
                logger.warning(f"{provider.name} failed: {str(e)}")
                continue

            if not self._validate(result):
                logger.warning(f"{provider.name} returned an unusable answer, trying next provider")
                continue

            logger.info(f"{provider.name} answered in {time.time() - start_time:.2f} seconds")
            return result

        return None

    def fallback(self, question: str, bundle: ContextBundle) -> ProviderResult:
        """Answer locally once every provider has failed"""
        answer = None
        for rule in FALLBACK_RULES:
            answer = rule(question, bundle)
            if answer:
                logger.info(f"Using fallback rule {rule.__name__.lstrip('_')}")
                break

        sources = []
        if bundle.current_info and bundle.current_info.content:
            sources = bundle.current_info.sources

        return ProviderResult(answer=answer or GENERIC_APOLOGY, provider=FALLBACK_PROVIDER, sources=sources)

    async def generate(self, prompt: str, bundle: Optional[ContextBundle] = None, *,
                       question: str = "", max_tokens: int = 768,
                       thinking_mode: bool = False) -> ProviderResult:
        """Produce an answer, never raising"""
        bundle = bundle or ContextBundle()

        try:
            result = await self._try_providers(
                prompt, max_tokens, thinking_mode=thinking_mode, needs_search=bundle.needs_current_info,
            )
        except Exception as e:
            logger.error(f"Provider loop failed unexpectedly: {str(e)}")
            result = None

        if result is None:
            logger.warning("All providers failed, using fallback answer")
            result = self.fallback(question, bundle)
        elif bundle.current_info and bundle.current_info.sources and not result.sources:
            result = result.model_copy(update={"sources": bundle.current_info.sources})

        if thinking_mode and not result.thoughts:
            result = result.model_copy(update={
                "thoughts": list(SYNTHETIC_THOUGHTS),
                "thinking_summary": SYNTHETIC_SUMMARY,
                "thinking_source": "synthetic",
            })

        return result
