import asyncio
from unittest.mock import patch

import httpx
import pytest

from app.services.web_search import WebSearchClient

INSTANT_ANSWER = {
    "Heading": "Photosynthesis",
    "AbstractText": "Photosynthesis is the process plants use to convert light into energy.",
    "AbstractURL": "https://en.wikipedia.org/wiki/Photosynthesis",
    "RelatedTopics": [
        {"Text": "Chlorophyll - green pigment", "FirstURL": "https://duckduckgo.com/Chlorophyll"},
        {"Name": "Grouped", "Topics": []},
        {"Text": "Calvin cycle - light independent reactions", "FirstURL": "https://duckduckgo.com/Calvin_cycle"},
        {"Text": "Stomata - leaf pores", "FirstURL": "https://duckduckgo.com/Stomata"},
    ],
}


def test_parse_results_caps_sources():
    snippet = WebSearchClient.parse_results(INSTANT_ANSWER)

    assert snippet.content.startswith("Photosynthesis is the process")
    assert len(snippet.sources) == 3
    assert snippet.sources[0].title == "Photosynthesis"
    assert snippet.sources[1].title == "Chlorophyll"
    assert snippet.sources[2].url == "https://duckduckgo.com/Calvin_cycle"


def test_parse_empty_payload():
    snippet = WebSearchClient.parse_results({})

    assert snippet.content == ""
    assert snippet.sources == []


@pytest.mark.asyncio
async def test_search_errors_return_empty_snippet():
    client = WebSearchClient(base_url="https://search.invalid/", timeout_seconds=1)

    with patch.object(WebSearchClient, "_search", side_effect=RuntimeError("network down")):
        snippet = await client.search("latest news")

    assert snippet.content == ""
    assert snippet.sources == []


@pytest.mark.asyncio
async def test_search_timeout_returns_empty_snippet():
    async def slow_search(self, query):
        await asyncio.sleep(1)

    client = WebSearchClient(timeout_seconds=0.01)

    with patch.object(WebSearchClient, "_search", slow_search):
        snippet = await client.search("latest news")

    assert snippet.content == ""


def test_direct_results_come_before_related_topics():
    payload = dict(INSTANT_ANSWER, Results=[
        {"Text": "Official site - Photosynthesis research", "FirstURL": "https://photosynthesis.example.org"},
    ])

    snippet = WebSearchClient.parse_results(payload)

    assert [source.url for source in snippet.sources] == [
        "https://en.wikipedia.org/wiki/Photosynthesis",
        "https://photosynthesis.example.org",
        "https://duckduckgo.com/Chlorophyll",
    ]
    assert "Official site - Photosynthesis research" in snippet.content


def test_results_without_abstract():
    snippet = WebSearchClient.parse_results({
        "Results": [{"Text": "Election results 2026", "FirstURL": "https://news.example.com/election"}],
    })

    assert snippet.content == "Election results 2026"
    assert snippet.sources[0].url == "https://news.example.com/election"


@pytest.mark.asyncio
async def test_search_reuses_one_http_client():
    RealAsyncClient = httpx.AsyncClient
    created = []

    def factory(**kwargs):
        client = RealAsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=INSTANT_ANSWER)),
            **kwargs,
        )
        created.append(client)
        return client

    search_client = WebSearchClient(base_url="https://api.duckduckgo.com/", timeout_seconds=5)
    with patch("app.services.web_search.httpx.AsyncClient", factory):
        first = await search_client.search("latest photosynthesis news")
        second = await search_client.search("latest photosynthesis research")
        await search_client.aclose()

    assert first.sources and second.sources
    assert len(created) == 1
    assert created[0].is_closed
