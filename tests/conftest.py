"""Shared fixtures and fakes for the test suite."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from langchain_core.messages import AIMessage

from autoblog.agents import BlogWriterAgent, FAQAgent, SEOAgent
from autoblog.jobs.database import JobStore
from autoblog.wordpress import WordPressClient

DRAFT_HTML = (
    "<h1>Indoor Herb Gardens</h1>"
    "<p>Growing basil and mint on a windowsill is easier than most people think.</p>"
    "<h2>Light</h2><p>Six hours of sun keeps herbs compact.</p>"
)

SEO_JSON = json.dumps({
    "title": "Indoor Herb Gardens: A Beginner's Guide",
    "description": "Grow basil and mint indoors with six hours of light.",
    "tags": ["herbs", "gardening", "indoor plants"],
})

FAQ_JSON = json.dumps([
    {"question": "How much light do herbs need?", "answer": "About six hours a day."},
    {"question": "Which herbs are easiest?", "answer": "Basil and mint."},
    {"question": "Do herbs need fertilizer?", "answer": "A little, once a month."},
])


class FakeLLM:
    """
    Stand-in for a chat model.

    Each ainvoke() consumes the next scripted response; the last one is
    repeated. An Exception instance in the script is raised instead, and an
    AIMessage is returned as-is. bind() records its arguments in ``bound``.
    """

    def __init__(self, *responses: Any):
        self.responses: List[Any] = list(responses)
        self.calls: List[list] = []
        self.bound: Dict[str, Any] = {}

    def bind(self, **kwargs):
        self.bound = kwargs
        return self

    async def ainvoke(self, messages):
        self.calls.append(messages)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, AIMessage):
            return item
        return AIMessage(content=item)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class WordPressServer:
    """
    In-memory WordPress REST endpoint for httpx.MockTransport.

    ``fail`` maps "METHOD /path" to a list of status codes returned (in
    order) before the route starts succeeding.
    """

    def __init__(self, fail: Optional[Dict[str, List[int]]] = None):
        self.fail = {k: list(v) for k, v in (fail or {}).items()}
        self.requests: List[httpx.Request] = []
        self.posts: Dict[int, Dict[str, Any]] = {}
        self._next_id = 42

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/wp-json/wp/v2", "", 1)
        key = f"{request.method} {path}"

        pending = self.fail.get(key)
        if pending:
            status = pending.pop(0)
            return httpx.Response(status, json={"code": "rest_error", "message": f"HTTP {status}"})

        if key == "POST /posts":
            body = json.loads(request.content)
            post_id = self._next_id
            self._next_id += 1
            post = {
                "id": post_id,
                "link": f"https://blog.example.com/?p={post_id}",
                "status": body.get("status", "draft"),
                "title": {"rendered": body["title"]},
            }
            self.posts[post_id] = post
            return httpx.Response(201, json=post)

        if request.method == "PUT" and path.startswith("/posts/"):
            post_id = int(path.rsplit("/", 1)[1])
            if post_id not in self.posts:
                return httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."})
            self.posts[post_id].update(json.loads(request.content))
            return httpx.Response(200, json=self.posts[post_id])

        return httpx.Response(404, json={"code": "rest_no_route", "message": "No route"})

    def calls(self, method: str, path_prefix: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.startswith(f"/wp-json/wp/v2{path_prefix}")
        ]


def make_agents(
    draft: Any = DRAFT_HTML,
    seo: Any = SEO_JSON,
    faq: Any = FAQ_JSON
):
    return (
        BlogWriterAgent(llm=FakeLLM(draft) if not isinstance(draft, FakeLLM) else draft),
        SEOAgent(llm=FakeLLM(seo) if not isinstance(seo, FakeLLM) else seo),
        FAQAgent(llm=FakeLLM(faq) if not isinstance(faq, FakeLLM) else faq),
    )


def make_wordpress(server: WordPressServer) -> WordPressClient:
    return WordPressClient(
        "https://blog.example.com",
        token="test-token",
        transport=httpx.MockTransport(server.handler),
    )


@pytest_asyncio.fixture
async def store():
    job_store = JobStore(":memory:")
    await job_store.connect()
    yield job_store
    await job_store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wp_server() -> WordPressServer:
    return WordPressServer()


@pytest.fixture
def generation_payload() -> Dict[str, Any]:
    return {
        "topic": "Indoor herb gardens",
        "keywords": ["basil", "windowsill"],
        "word_count": 800,
    }


@pytest.fixture
def publish_payload() -> Dict[str, Any]:
    return {
        "content": DRAFT_HTML,
        "seo": {
            "title": "Indoor Herb Gardens",
            "description": "Grow herbs indoors.",
            "tags": ["herbs"],
        },
        "status": "draft",
    }


def task_returning(result: Dict[str, Any], calls: Optional[list] = None) -> Callable:
    async def task(payload, job):
        if calls is not None:
            calls.append(payload)
        return result
    return task
