import json
from unittest.mock import patch

import httpx
import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from app.core.config import Settings
from app.services.providers import (
    GoogleProvider, OllamaProvider, OpenAIProvider, ProviderError, ProviderNotConfiguredError,
    SEARCH_INSTRUCTION, THINKING_INSTRUCTION, build_providers, split_thinking, system_instructions,
)

ANSWER = "Recursion is when a function calls itself on a smaller piece of the problem."

RealAsyncClient = httpx.AsyncClient


def make_settings(**overrides):
    values = {
        "OPENAI_API_KEY": "",
        "GOOGLE_AI_API_KEY": "",
        "OLLAMA_BASE_URL": "",
        "AI_PROVIDER_ORDER": "openai,google,ollama",
    }
    values.update(overrides)
    return Settings(**values)


def mock_client(handler):
    """Route every AsyncClient the providers create through handler"""
    def factory(**kwargs):
        return RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    return patch("app.services.providers.httpx.AsyncClient", factory)


def test_split_thinking():
    answer, thoughts, summary = split_thinking(f"<think>\nStep 1: read\n\nStep 2: plan\n</think>\n{ANSWER}")

    assert answer == ANSWER
    assert thoughts == ["Step 1: read", "Step 2: plan"]
    assert summary == "Step 2: plan"


def test_split_thinking_without_trace():
    assert split_thinking(ANSWER) == (ANSWER, [], "")
    assert split_thinking("") == ("", [], "")


def test_build_providers_follows_configured_order():
    config = make_settings(AI_PROVIDER_ORDER="Ollama, openai, unknown, ollama")

    providers = build_providers(config)

    assert [p.name for p in providers] == ["ollama", "openai"]


def test_is_configured():
    config = make_settings(GOOGLE_AI_API_KEY="key")

    assert not OpenAIProvider(config).is_configured()
    assert GoogleProvider(config).is_configured()
    assert not OllamaProvider(config).is_configured()


@pytest.mark.asyncio
async def test_unconfigured_provider_raises():
    with pytest.raises(ProviderNotConfiguredError):
        await OpenAIProvider(make_settings()).generate("prompt", 256)


@pytest.mark.asyncio
async def test_openai_provider_uses_chat_model():
    provider = OpenAIProvider(make_settings(OPENAI_API_KEY="sk-test"))
    fake_llm = FakeListChatModel(responses=[f"<think>Plan it</think>{ANSWER}"])

    with patch.object(OpenAIProvider, "_build_llm", return_value=fake_llm):
        result = await provider.generate("Explain recursion with {braces} in it", 512)

    assert result.provider == "openai"
    assert result.answer == ANSWER
    assert result.thoughts == ["Plan it"]
    assert result.thinking_source == "provider"


@pytest.mark.asyncio
async def test_google_provider_parses_candidates():
    requests_seen = []

    def handler(request):
        requests_seen.append(request)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": ANSWER}]}}]})

    provider = GoogleProvider(make_settings(GOOGLE_AI_API_KEY="g-key"))
    with mock_client(handler):
        result = await provider.generate("prompt", 300)

    assert result.answer == ANSWER
    assert requests_seen[0].url.params["key"] == "g-key"
    body = json.loads(requests_seen[0].content)
    assert body["generationConfig"]["maxOutputTokens"] == 300


@pytest.mark.asyncio
async def test_google_provider_rejects_odd_payload():
    provider = GoogleProvider(make_settings(GOOGLE_AI_API_KEY="g-key"))
    with mock_client(lambda request: httpx.Response(200, json={"promptFeedback": {}})):
        with pytest.raises(ProviderError):
            await provider.generate("prompt", 300)


@pytest.mark.asyncio
async def test_ollama_provider():
    def handler(request):
        assert request.url.path == "/api/generate"
        body = json.loads(request.content)
        assert body["stream"] is False
        assert body["options"]["num_predict"] == 128
        return httpx.Response(200, json={"response": ANSWER})

    provider = OllamaProvider(make_settings(OLLAMA_BASE_URL="http://localhost:11434/"))
    with mock_client(handler):
        result = await provider.generate("prompt", 128)

    assert result.provider == "ollama"
    assert result.answer == ANSWER


@pytest.mark.asyncio
async def test_http_errors_propagate_to_caller():
    provider = OllamaProvider(make_settings(OLLAMA_BASE_URL="http://localhost:11434"))
    with mock_client(lambda request: httpx.Response(503)):
        with pytest.raises(httpx.HTTPStatusError):
            await provider.generate("prompt", 128)


def test_system_instructions_follow_request_flags():
    plain = system_instructions()
    assert SEARCH_INSTRUCTION not in plain
    assert THINKING_INSTRUCTION not in plain

    flagged = system_instructions(thinking_mode=True, needs_search=True)
    assert SEARCH_INSTRUCTION in flagged
    assert THINKING_INSTRUCTION in flagged


@pytest.mark.asyncio
async def test_ollama_system_prompt_carries_flags():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"response": ANSWER})

    provider = OllamaProvider(make_settings(OLLAMA_BASE_URL="http://localhost:11434"))
    with mock_client(handler):
        await provider.generate("prompt", 128, thinking_mode=True, needs_search=True)
        await provider.generate("prompt", 128)

    assert SEARCH_INSTRUCTION in bodies[0]["system"]
    assert THINKING_INSTRUCTION in bodies[0]["system"]
    assert SEARCH_INSTRUCTION not in bodies[1]["system"]
    assert THINKING_INSTRUCTION not in bodies[1]["system"]


@pytest.mark.asyncio
async def test_google_system_instruction_carries_search_flag():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": ANSWER}]}}]})

    provider = GoogleProvider(make_settings(GOOGLE_AI_API_KEY="g-key"))
    with mock_client(handler):
        await provider.generate("prompt", 300, needs_search=True)

    assert SEARCH_INSTRUCTION in bodies[0]["systemInstruction"]["parts"][0]["text"]


@pytest.mark.asyncio
async def test_http_client_is_reused_and_closed():
    created = []

    def factory(**kwargs):
        client = RealAsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"response": ANSWER})),
            **kwargs,
        )
        created.append(client)
        return client

    provider = OllamaProvider(make_settings(OLLAMA_BASE_URL="http://localhost:11434"))
    with patch("app.services.providers.httpx.AsyncClient", factory):
        await provider.generate("prompt", 128)
        await provider.generate("prompt", 128)
        await provider.aclose()

    assert len(created) == 1
    assert created[0].is_closed


@pytest.mark.asyncio
async def test_openai_chat_model_is_built_once():
    provider = OpenAIProvider(make_settings(OPENAI_API_KEY="sk-test"))
    fake_llm = FakeListChatModel(responses=[ANSWER, ANSWER])

    with patch.object(OpenAIProvider, "_build_llm", return_value=fake_llm) as build_llm:
        await provider.generate("first", 256)
        await provider.generate("second", 1024, thinking_mode=True)

    assert build_llm.call_count == 1
