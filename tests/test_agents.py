"""Tests for the drafting, SEO and FAQ agents."""

import asyncio
import json

import pytest
from langchain_core.messages import AIMessage

from autoblog.agents import BlogWriterAgent, FAQAgent, SEOAgent, SEO_TITLE_MAX_CHARS
from autoblog.agents.base import strip_code_fences, strip_outer_fence
from autoblog.agents.seo import trim_title
from autoblog.agents.writer import count_words
from autoblog.errors import LLMResponseError, RemoteServiceError

from conftest import DRAFT_HTML, FAQ_JSON, SEO_JSON, FakeLLM


class ProviderError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class SlowLLM:
    async def ainvoke(self, messages):
        await asyncio.sleep(1)


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("```html\n<p>Hi</p>\n```") == "<p>Hi</p>"
    assert strip_code_fences("  <p>plain</p> ") == "<p>plain</p>"
    assert strip_code_fences('Here you go:\n```json\n{"a": 1}\n```') == '{"a": 1}'


def test_outer_fence_keeps_embedded_code_blocks():
    html = "<p>Send this:</p><pre>```json\n{\"a\": 1}\n```</pre><p>Done.</p>"
    assert strip_outer_fence(html) == html
    assert strip_outer_fence(f"```html\n{html}\n```") == html
    assert strip_outer_fence(f"```\n{html}\n```") == html


def test_count_words_ignores_markup():
    assert count_words("<h1>Two words</h1><p>and three more</p>") == 5


def test_trim_title_cuts_on_word_boundary():
    title = "The Complete Beginner's Guide to Growing Herbs Indoors All Year Round"
    trimmed = trim_title(title)
    assert len(trimmed) <= SEO_TITLE_MAX_CHARS
    assert title.startswith(trimmed)
    assert not trimmed.endswith(" ")


@pytest.mark.asyncio
async def test_writer_returns_html_draft():
    llm = FakeLLM(f"```html\n{DRAFT_HTML}\n```")
    writer = BlogWriterAgent(llm=llm)

    draft = await writer.write("Indoor herbs", ["basil"], 800)

    assert draft.html == DRAFT_HTML
    assert draft.word_count == count_words(DRAFT_HTML)
    prompt = llm.calls[0][-1].content
    assert "800-word" in prompt
    assert "basil" in prompt


@pytest.mark.asyncio
async def test_writer_keeps_code_samples_in_the_draft():
    html = "<p>Call the API like this:</p><pre>```json\n{\"topic\": \"herbs\"}\n```</pre><p>That is all.</p>"
    draft = await BlogWriterAgent(llm=FakeLLM(html)).write("APIs", [], 300)
    assert draft.html == html


@pytest.mark.asyncio
@pytest.mark.parametrize("word_count,budget", [(1000, 1500), (333, 500), (10000, 15000)])
async def test_writer_token_budget_scales_with_length(word_count, budget):
    llm = FakeLLM(DRAFT_HTML)
    await BlogWriterAgent(llm=llm).write("Indoor herbs", [], word_count)
    assert llm.bound == {"max_tokens": budget}


@pytest.mark.asyncio
async def test_writer_token_budget_capped_by_agent_limit():
    llm = FakeLLM(DRAFT_HTML)
    await BlogWriterAgent(llm=llm, max_tokens=4000).write("Indoor herbs", [], 5000)
    assert llm.bound == {"max_tokens": 4000}


@pytest.mark.asyncio
async def test_truncated_draft_is_an_error():
    cut_off = AIMessage(
        content="<h1>Indoor Herb Gardens</h1><p>Growing basil",
        response_metadata={"stop_reason": "max_tokens"},
    )
    with pytest.raises(LLMResponseError) as exc_info:
        await BlogWriterAgent(llm=FakeLLM(cut_off)).write("Indoor herbs", [], 800)
    assert "token limit" in str(exc_info.value)
    assert exc_info.value.raw_response.endswith("Growing basil")


@pytest.mark.asyncio
async def test_seo_call_uses_agent_limit():
    llm = FakeLLM(SEO_JSON)
    await SEOAgent(llm=llm).generate(DRAFT_HTML)
    assert llm.bound == {}


@pytest.mark.asyncio
async def test_seo_metadata_parsed():
    seo = await SEOAgent(llm=FakeLLM(SEO_JSON)).generate(DRAFT_HTML)
    assert seo.title == "Indoor Herb Gardens: A Beginner's Guide"
    assert seo.tags == ["herbs", "gardening", "indoor plants"]


@pytest.mark.asyncio
async def test_seo_long_title_trimmed_and_tags_deduplicated():
    answer = json.dumps({
        "title": "A Very Long Title About Indoor Herb Gardens That Keeps Going Well Past Sixty",
        "description": "  Grow\nherbs  indoors. ",
        "tags": ["Herbs", "herbs", " gardening "],
    })
    seo = await SEOAgent(llm=FakeLLM(answer)).generate(DRAFT_HTML)

    assert len(seo.title) <= SEO_TITLE_MAX_CHARS
    assert seo.description == "Grow herbs indoors."
    assert seo.tags == ["Herbs", "gardening"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer",
    [
        "Sure! Here is your metadata.",
        json.dumps({"title": "Only a title"}),
        json.dumps({"title": "T", "description": "D", "tags": []}),
        json.dumps(["title", "description"]),
    ],
)
async def test_seo_bad_answer_fails(answer):
    with pytest.raises(LLMResponseError):
        await SEOAgent(llm=FakeLLM(answer)).generate(DRAFT_HTML)


@pytest.mark.asyncio
async def test_faq_accepts_list_or_wrapped_object():
    items = json.loads(FAQ_JSON)

    from_list = await FAQAgent(llm=FakeLLM(FAQ_JSON)).generate(DRAFT_HTML)
    wrapped = await FAQAgent(llm=FakeLLM(json.dumps({"faqs": items}))).generate(DRAFT_HTML)

    assert [f.question for f in from_list] == [i["question"] for i in items]
    assert from_list == wrapped


@pytest.mark.asyncio
async def test_faq_rejects_blank_answers():
    answer = json.dumps([{"question": "Why?", "answer": "   "}])
    with pytest.raises(LLMResponseError):
        await FAQAgent(llm=FakeLLM(answer)).generate(DRAFT_HTML)


@pytest.mark.asyncio
async def test_empty_response_is_an_error():
    with pytest.raises(LLMResponseError):
        await BlogWriterAgent(llm=FakeLLM("   ")).write("t", [], 100)


@pytest.mark.asyncio
@pytest.mark.parametrize("status,retryable", [(529, True), (429, True), (400, False), (401, False)])
async def test_provider_errors_mapped(status, retryable):
    agent = BlogWriterAgent(llm=FakeLLM(ProviderError("provider said no", status)))
    with pytest.raises(RemoteServiceError) as exc_info:
        await agent.write("t", [], 100)
    assert exc_info.value.status_code == status
    assert exc_info.value.retryable is retryable
    assert exc_info.value.service == "llm"


@pytest.mark.asyncio
async def test_call_timeout_is_retryable():
    agent = SEOAgent(llm=SlowLLM(), timeout=0.01)
    with pytest.raises(RemoteServiceError) as exc_info:
        await agent.generate(DRAFT_HTML)
    assert exc_info.value.retryable
    assert "timed out" in str(exc_info.value)
