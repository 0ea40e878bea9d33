import re
from typing import List, Optional, Tuple

import httpx
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from app.core.config import Settings, settings as default_settings
from app.core.logging import get_logger
from app.models.schemas import ProviderResult

logger = get_logger(__name__)

THINK_BLOCK = re.compile(r"<think>(.*?)</think>", re.DOTALL | re.IGNORECASE)
STRAY_THINK_TAG = re.compile(r"</?think>", re.IGNORECASE)

SYSTEM_PERSONA = (
    "You are CourseConnect AI, a friendly study buddy for college students. "
    "Follow the formatting instructions in the user's message exactly."
)


class ProviderError(Exception):
    """A provider call failed or returned something unusable"""


class ProviderNotConfiguredError(ProviderError):
    """The provider is missing its API key or endpoint"""


def split_thinking(text: str) -> Tuple[str, List[str], str]:
    """
    Separate <think> blocks from the answer.
    Returns (answer, thought lines, one-line summary).
    """
    if not text:
        return "", [], ""

    thoughts = []
    for block in THINK_BLOCK.findall(text):
        thoughts.extend(line.strip() for line in block.splitlines() if line.strip())

    answer = STRAY_THINK_TAG.sub("", THINK_BLOCK.sub("", text)).strip()
    summary = thoughts[-1] if thoughts else ""
    return answer, thoughts, summary


SEARCH_INSTRUCTION = (
    "The message includes current information from a live web search. "
    "Base time-sensitive facts on it and say when it may be out of date."
)
THINKING_INSTRUCTION = "Put your full step-by-step reasoning in <think> tags before the final answer."
NO_THINKING_INSTRUCTION = "Keep any <think> section short; only the final answer is shown to the student."


def system_instructions(thinking_mode: bool = False, needs_search: bool = False) -> str:
    """System message for one call, shaped by the request flags"""
    lines = [SYSTEM_PERSONA]
    if needs_search:
        lines.append(SEARCH_INSTRUCTION)
    lines.append(THINKING_INSTRUCTION if thinking_mode else NO_THINKING_INSTRUCTION)
    return " ".join(lines)


class AIProvider:
    """Base class for a model backend. Subclasses implement complete()."""

    name = "base"

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self._http_client: Optional[httpx.AsyncClient] = None

    def is_configured(self) -> bool:
        return True

    def http_client(self) -> httpx.AsyncClient:
        # One pooled client per provider, opened on first use
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.PROVIDER_TIMEOUT_SECONDS)
        return self._http_client

    async def aclose(self):
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def complete(self, prompt: str, max_tokens: int, *,
                       thinking_mode: bool = False, needs_search: bool = False) -> str:
        raise NotImplementedError

    async def generate(self, prompt: str, max_tokens: int, *,
                       thinking_mode: bool = False, needs_search: bool = False) -> ProviderResult:
        if not self.is_configured():
            raise ProviderNotConfiguredError(f"{self.name} provider is not configured")

        raw = await self.complete(prompt, max_tokens, thinking_mode=thinking_mode, needs_search=needs_search)
        if not isinstance(raw, str):
            raise ProviderError(f"{self.name} returned a non-text response")

        answer, thoughts, summary = split_thinking(raw)
        return ProviderResult(
            answer=answer,
            provider=self.name,
            thoughts=thoughts,
            thinking_summary=summary,
            thinking_source="provider" if thoughts else None,
        )


class OpenAIProvider(AIProvider):
    name = "openai"

    def __init__(self, config: Optional[Settings] = None):
        super().__init__(config)
        self._llm: Optional[ChatOpenAI] = None

    def is_configured(self) -> bool:
        return bool(self.settings.OPENAI_API_KEY)

    def _build_llm(self) -> ChatOpenAI:
        return ChatOpenAI(
            api_key=self.settings.OPENAI_API_KEY,
            model=self.settings.OPENAI_MODEL,
            temperature=self.settings.LLM_TEMPERATURE,
            timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
        )

    @property
    def llm(self) -> ChatOpenAI:
        if self._llm is None:
            self._llm = self._build_llm()
        return self._llm

    async def complete(self, prompt: str, max_tokens: int, *,
                       thinking_mode: bool = False, needs_search: bool = False) -> str:
        # Prompt and system text go in as variables so braces in them are never parsed
        chat_prompt = ChatPromptTemplate.from_messages([
            ("system", "{system}"),
            ("user", "{prompt}"),
        ])
        chain = chat_prompt | self.llm.bind(max_tokens=max_tokens)

        logger.info(f"Calling OpenAI model {self.settings.OPENAI_MODEL} (max_tokens={max_tokens})")
        response = await chain.ainvoke({
            "system": system_instructions(thinking_mode, needs_search),
            "prompt": prompt,
        })
        return response.content


class GoogleProvider(AIProvider):
    name = "google"

    def is_configured(self) -> bool:
        return bool(self.settings.GOOGLE_AI_API_KEY)

    async def complete(self, prompt: str, max_tokens: int, *,
                       thinking_mode: bool = False, needs_search: bool = False) -> str:
        url = f"{self.settings.GOOGLE_API_BASE.rstrip('/')}/models/{self.settings.GOOGLE_MODEL}:generateContent"
        payload = {
            "systemInstruction": {"parts": [{"text": system_instructions(thinking_mode, needs_search)}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.settings.LLM_TEMPERATURE,
                "maxOutputTokens": max_tokens,
            },
        }

        logger.info(f"Calling Gemini model {self.settings.GOOGLE_MODEL} (max_tokens={max_tokens})")
        response = await self.http_client().post(url, params={"key": self.settings.GOOGLE_AI_API_KEY}, json=payload)
        response.raise_for_status()
        data = response.json()

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(f"Unexpected Gemini response: {str(data)[:200]}")
        return "".join(part.get("text", "") for part in parts)


class OllamaProvider(AIProvider):
    name = "ollama"

    def is_configured(self) -> bool:
        return bool(self.settings.OLLAMA_BASE_URL)

    async def complete(self, prompt: str, max_tokens: int, *,
                       thinking_mode: bool = False, needs_search: bool = False) -> str:
        url = f"{self.settings.OLLAMA_BASE_URL.rstrip('/')}/api/generate"
        payload = {
            "model": self.settings.OLLAMA_MODEL,
            "system": system_instructions(thinking_mode, needs_search),
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.settings.LLM_TEMPERATURE,
                "num_predict": max_tokens,
                "top_p": 0.9,
                "top_k": 20,
            },
        }

        logger.info(f"Calling Ollama model {self.settings.OLLAMA_MODEL} (max_tokens={max_tokens})")
        response = await self.http_client().post(url, json=payload)
        response.raise_for_status()
        data = response.json()

        if "response" not in data:
            raise ProviderError(f"Unexpected Ollama response: {str(data)[:200]}")
        return data["response"]


PROVIDER_CLASSES = {
    OpenAIProvider.name: OpenAIProvider,
    GoogleProvider.name: GoogleProvider,
    OllamaProvider.name: OllamaProvider,
}


def build_providers(config: Optional[Settings] = None) -> List[AIProvider]:
    """Instantiate providers in the configured priority order"""
    config = config or default_settings
    providers = []
    seen = set()
    for name in config.provider_order:
        if name in seen:
            continue
        seen.add(name)
        provider_class = PROVIDER_CLASSES.get(name)
        if provider_class is None:
            logger.warning(f"Unknown provider in AI_PROVIDER_ORDER: {name}")
            continue
        providers.append(provider_class(config))
    return providers
