from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any, Literal, Union


class CamelModel(BaseModel):
    """Base model that accepts both camelCase wire names and snake_case field names"""
    model_config = ConfigDict(populate_by_name=True)


class QueryType(str, Enum):
    SHORT_ANSWER = "short_answer"
    CODE = "code"
    REASONING = "reasoning"
    ESSAY = "essay"


class Source(BaseModel):
    """Source link attached to an answer"""
    title: str
    url: str
    snippet: str = ""


class AttachedFile(BaseModel):
    name: str
    type: str = "unknown"


class ChatTurn(CamelModel):
    """One prior message in the conversation"""
    role: str = "user"
    content: Optional[str] = ""
    files: List[AttachedFile] = []
    file: Optional[AttachedFile] = None


class Assignment(CamelModel):
    name: str
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    description: Optional[str] = None


class Exam(CamelModel):
    name: str
    date: Optional[str] = None


class CourseContext(CamelModel):
    """Syllabus data for the course the chat belongs to"""
    course_name: Optional[str] = Field(default=None, alias="courseName")
    course_code: Optional[str] = Field(default=None, alias="courseCode")
    professor: Optional[str] = None
    university: Optional[str] = None
    semester: Optional[str] = None
    year: Optional[Union[str, int]] = None
    schedule: Optional[str] = None
    topics: List[str] = []
    assignments: List[Assignment] = []
    exams: List[Exam] = []


class LearningProfile(CamelModel):
    user_id: str = Field(alias="userId")
    struggling_with: List[str] = Field(default=[], alias="strugglingWith")
    strengths: List[str] = []
    preferred_complexity: Optional[str] = Field(default=None, alias="preferredComplexity")


class CurrentInfoSnippet(BaseModel):
    content: str = ""
    sources: List[Source] = []


class ContextBundle(BaseModel):
    """Everything known about the situation a question is asked in"""
    label: Optional[str] = None
    course: Optional[CourseContext] = None
    enrolled_courses: List[CourseContext] = []
    learning_profile: Optional[LearningProfile] = None
    current_info: Optional[CurrentInfoSnippet] = None
    conversation_history: List[ChatTurn] = []
    needs_current_info: bool = False


class ChatRequest(CamelModel):
    """Request model for the chat endpoints"""
    question: Optional[str] = None
    context: Optional[str] = None
    conversation_history: List[ChatTurn] = Field(default=[], alias="conversationHistory")
    should_call_ai: bool = Field(default=True, alias="shouldCallAI")
    is_public_chat: bool = Field(default=False, alias="isPublicChat")
    course_data: Optional[CourseContext] = Field(default=None, alias="courseData")
    all_syllabi: List[CourseContext] = Field(default=[], alias="allSyllabi")
    thinking_mode: bool = Field(default=False, alias="thinkingMode")
    user_id: Optional[str] = Field(default=None, alias="userId")


class ProviderResult(BaseModel):
    """Answer accepted from one provider, or synthesised locally"""
    answer: str
    provider: str
    sources: List[Source] = []
    thoughts: List[str] = []
    thinking_summary: str = ""
    # "provider" when the trace came from the model, "synthetic" when filled in locally
    thinking_source: Optional[Literal["provider", "synthetic"]] = None


class ChatResponse(CamelModel):
    """Response model for the non-streaming chat endpoint"""
    success: bool = True
    answer: Optional[str] = None
    provider: Optional[str] = None
    should_respond: bool = Field(default=True, alias="shouldRespond")
    timestamp: str
    sources: Optional[List[Source]] = None
    thinking_steps: List[str] = Field(default=[], alias="thinkingSteps")
    thinking_summary: str = Field(default="", alias="thinkingSummary")


# Stream events, one JSON object per line on the wire

class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    message: str


class ThinkingEvent(BaseModel):
    type: Literal["thinking"] = "thinking"
    thinking: str


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    content: str


class DoneEvent(CamelModel):
    type: Literal["done"] = "done"
    full_response: str = Field(alias="fullResponse")
    answer: str
    provider: str
    sources: Optional[List[Source]] = None
    thinking_steps: List[str] = Field(default=[], alias="thinkingSteps")
    thinking_summary: str = Field(default="", alias="thinkingSummary")


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str
    message: str = ""


class DocumentExtractRequest(CamelModel):
    filename: str
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    content: str  # base64


class DocumentExtractResponse(BaseModel):
    success: bool
    text: Optional[str] = None
    message: Optional[str] = None
    metadata: Dict[str, Any] = {}
