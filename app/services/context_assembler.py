import asyncio
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger
from app.models.schemas import ChatRequest, ChatTurn, ContextBundle, CourseContext, CurrentInfoSnippet
from app.services.learning_profile import LearningProfileStore, format_profile
from app.services.web_search import WebSearchClient

logger = get_logger(__name__)

# Words that mean the answer depends on live information
CURRENT_INFO_KEYWORDS = (
    "news", "today", "current", "recent", "latest", "politics", "election",
    "this week", "right now",
)

# Terms highlighted in answers regardless of the course
ACADEMIC_TERMS = (
    "algorithm", "hypothesis", "theorem", "derivative", "integral", "function",
    "variable", "equation", "matrix", "vector", "probability", "statistics",
    "photosynthesis", "mitosis", "meiosis", "molecule", "atom", "electron",
    "energy", "entropy", "thermodynamics", "evolution", "ecosystem", "cell",
    "supply and demand", "inflation", "opportunity cost", "cognitive",
    "machine learning", "neural network", "data structure", "recursion",
    "thesis", "citation", "methodology",
)

DEADLINE_WINDOW_DAYS = 7


def needs_current_info(question: str) -> bool:
    """True when the question mentions news, recent events or the current year"""
    lowered = (question or "").lower()
    if str(datetime.now().year) in lowered:
        return True
    return any(keyword in lowered for keyword in CURRENT_INFO_KEYWORDS)


class ContextAssembler:
    """Collects everything known about the situation a question is asked in"""

    def __init__(self,
                 profile_store: Optional[LearningProfileStore] = None,
                 search_client: Optional[WebSearchClient] = None):
        self.profile_store = profile_store or LearningProfileStore()
        self.search_client = search_client or WebSearchClient()

    async def aclose(self):
        await self.search_client.aclose()

    async def _load_profile(self, user_id: Optional[str]):
        try:
            return await self.profile_store.get_profile(user_id)
        except Exception as e:
            logger.warning(f"Learning profile lookup failed: {str(e)}")
            return None

    async def _search(self, question: str, wanted: bool) -> Optional[CurrentInfoSnippet]:
        if not wanted:
            return None
        try:
            snippet = await self.search_client.search(question)
        except Exception as e:
            logger.warning(f"Current info search failed: {str(e)}")
            return None
        return snippet if snippet.content else None

    async def gather(self, question: str, request: ChatRequest) -> ContextBundle:
        """Build the context bundle for one request, never raising"""
        wanted = needs_current_info(question)
        if wanted:
            logger.info("Question needs current information, searching the web")

        profile, current_info = await asyncio.gather(
            self._load_profile(request.user_id),
            self._search(question, wanted),
        )

        return ContextBundle(
            label=request.context,
            course=request.course_data,
            enrolled_courses=request.all_syllabi,
            learning_profile=profile,
            current_info=current_info,
            conversation_history=request.conversation_history,
            needs_current_info=wanted,
        )


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip()[:10]).date()
    except ValueError:
        return None


def describe_deadline(name: str, days_until: int) -> str:
    if days_until == 0:
        return f"{name} is due TODAY!"
    if days_until == 1:
        return f"{name} is due TOMORROW!"
    if days_until <= 3:
        return f"{name} is due in {days_until} days (that's really soon!)"
    return f"{name} is coming up in {days_until} days"


def upcoming_deadlines(course: CourseContext, today: date) -> Tuple[List[str], List[str]]:
    """Exams and assignments due within the next week, soonest first"""

    def within_window(items: Iterable[Tuple[str, Optional[str]]]) -> List[str]:
        dated = []
        for name, raw in items:
            due = _parse_date(raw)
            if due is None:
                continue
            days_until = (due - today).days
            if 0 <= days_until <= DEADLINE_WINDOW_DAYS:
                dated.append((days_until, name))
        dated.sort(key=lambda pair: pair[0])
        return [describe_deadline(name, days) for days, name in dated]

    exams = within_window((exam.name, exam.date) for exam in course.exams)
    assignments = within_window((a.name, a.due_date) for a in course.assignments)
    return exams, assignments


def _render_course(course: CourseContext, today: date) -> str:
    lines = []

    title = course.course_name or course.course_code
    if title:
        if course.course_name and course.course_code:
            title = f"{course.course_name} ({course.course_code})"
        lines.append(f"Course: {title}")
    if course.professor:
        lines.append(f"Professor: {course.professor}")
    if course.university:
        lines.append(f"University: {course.university}")
    term = " ".join(str(part) for part in (course.semester, course.year) if part)
    if term:
        lines.append(f"Term: {term}")
    if course.schedule:
        lines.append(f"Schedule: {course.schedule}")
    if course.topics:
        lines.append(f"Topics: {', '.join(course.topics)}")
    if course.assignments:
        lines.append("Assignments:")
        for assignment in course.assignments:
            due = f" (due {assignment.due_date})" if assignment.due_date else ""
            lines.append(f"- {assignment.name}{due}")
    if course.exams:
        lines.append("Exams:")
        for exam in course.exams:
            when = f" ({exam.date})" if exam.date else ""
            lines.append(f"- {exam.name}{when}")

    exams, assignments = upcoming_deadlines(course, today)
    if exams or assignments:
        lines.append("")
        lines.append("IMPORTANT UPCOMING DEADLINES:")
        lines.extend(f"- {message}" for message in exams + assignments)
        lines.append("Mention these proactively if relevant to the conversation!")

    return "\n".join(lines)


def _render_enrolled(courses: List[CourseContext]) -> str:
    lines = []
    for course in courses:
        name = course.course_name or course.course_code
        if not name:
            continue
        summary = f"- {name}"
        if course.course_name and course.course_code:
            summary = f"- {course.course_name} ({course.course_code})"
        if course.professor:
            summary += f", taught by {course.professor}"
        lines.append(summary)
    return "\n".join(lines)


def _render_turn(turn: ChatTurn) -> str:
    content = turn.content or ""
    if turn.files:
        file_info = ", ".join(f"{f.name} ({f.type})" for f in turn.files)
        content += f" [Attached files: {file_info}]"
    elif turn.file:
        content += f" [Attached file: {turn.file.name} ({turn.file.type})]"
    speaker = "AI" if turn.role == "assistant" else "User"
    return f"{speaker}: {content}"


def render_context(bundle: ContextBundle, now: Optional[datetime] = None) -> str:
    """
    Render a bundle into one text block for the prompt. Missing sections are
    left out entirely and an empty bundle renders to an empty string.
    """
    sections = []

    if bundle.label:
        sections.append(f"Context: {bundle.label}")

    if bundle.course:
        course_block = _render_course(bundle.course, (now or datetime.now()).date())
        if course_block:
            sections.append(course_block)

    if bundle.enrolled_courses:
        enrolled = _render_enrolled(bundle.enrolled_courses)
        if enrolled:
            sections.append(f"Student's enrolled courses:\n{enrolled}")

    profile_notes = format_profile(bundle.learning_profile)
    if profile_notes:
        sections.append(profile_notes)

    if bundle.current_info and bundle.current_info.content:
        sections.append(f"Current information:\n{bundle.current_info.content}")

    if bundle.conversation_history:
        recent = bundle.conversation_history[-settings.HISTORY_TURNS:]
        sections.append("Previous chat:\n" + "\n".join(_render_turn(turn) for turn in recent))

    if not sections:
        return ""

    # Time only matters once there is something to anchor it to
    now = now or datetime.now()
    sections.insert(0, f"Current date and time: {now.strftime('%A, %B %d, %Y %I:%M %p')}")
    return "\n\n".join(sections)


def highlight_terms(bundle: ContextBundle) -> List[str]:
    """Academic vocabulary plus the course's own topics, without duplicates"""
    terms = list(ACADEMIC_TERMS)
    if bundle.course:
        terms.extend(bundle.course.topics)

    seen = set()
    unique = []
    for term in terms:
        key = term.strip().lower()
        if key and key not in seen:
            seen.add(key)
            unique.append(term.strip())
    return unique
