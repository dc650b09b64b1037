"""Tests for the WordPress REST client."""

import base64
import json
from datetime import datetime

import httpx
import pytest

from autoblog.config import AppConfig
from autoblog.errors import RemoteServiceError
from autoblog.wordpress import WordPressClient, build_auth_header


def _client(handler) -> WordPressClient:
    return WordPressClient(
        "https://blog.example.com/",
        username="editor",
        app_password="abcd efgh",
        transport=httpx.MockTransport(handler),
    )


def test_basic_auth_header_from_application_password():
    header = build_auth_header(username="editor", app_password="abcd efgh")
    assert header == "Basic " + base64.b64encode(b"editor:abcd efgh").decode()


def test_token_takes_precedence():
    assert build_auth_header(token="t0k", username="u", app_password="p") == "Bearer t0k"


def test_missing_credentials_rejected():
    with pytest.raises(ValueError):
        build_auth_header(username="editor")


def test_from_config_requires_credentials():
    config = AppConfig(WORDPRESS_URL="https://blog.example.com", WORDPRESS_TOKEN=None,
                       WORDPRESS_USERNAME=None, WORDPRESS_APP_PASSWORD=None)
    with pytest.raises(ValueError):
        WordPressClient.from_config(config)


@pytest.mark.asyncio
async def test_create_post_sends_expected_request():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": 7, "link": "https://blog.example.com/?p=7", "status": "publish"})

    async with _client(handler) as wp:
        post = await wp.create_post("Title", "<p>Body</p>", status="publish", categories=[3])

    assert post["id"] == 7
    (request,) = seen
    assert request.url == "https://blog.example.com/wp-json/wp/v2/posts"
    assert request.headers["Authorization"].startswith("Basic ")
    assert json.loads(request.content) == {
        "title": "Title",
        "content": "<p>Body</p>",
        "status": "publish",
        "categories": [3],
    }


@pytest.mark.asyncio
async def test_create_post_without_id_is_an_error():
    async with _client(lambda r: httpx.Response(201, json={"status": "draft"})) as wp:
        with pytest.raises(RemoteServiceError):
            await wp.create_post("Title", "<p>Body</p>")


@pytest.mark.asyncio
async def test_schedule_naive_datetime_uses_site_time():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 7, "status": "future"})

    async with _client(handler) as wp:
        await wp.schedule_post(7, datetime(2026, 12, 1, 9, 30))

    assert seen[0].method == "PUT"
    assert seen[0].url.path == "/wp-json/wp/v2/posts/7"
    assert json.loads(seen[0].content) == {"status": "future", "date": "2026-12-01T09:30:00"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,retryable",
    [(400, False), (401, False), (403, False), (404, False), (408, True), (429, True), (500, True), (503, True)],
)
async def test_http_errors_mapped(status, retryable):
    def handler(request):
        return httpx.Response(status, json={"code": "rest_forbidden", "message": "Sorry, you are not allowed."})

    async with _client(handler) as wp:
        with pytest.raises(RemoteServiceError) as exc_info:
            await wp.get_post(1)

    error = exc_info.value
    assert error.status_code == status
    assert error.retryable is retryable
    assert error.service == "wordpress"
    assert "Sorry, you are not allowed." in str(error)


@pytest.mark.asyncio
async def test_timeout_is_retryable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as wp:
        with pytest.raises(RemoteServiceError) as exc_info:
            await wp.get_post(1)
    assert exc_info.value.retryable
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_connection_error_is_retryable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as wp:
        with pytest.raises(RemoteServiceError) as exc_info:
            await wp.create_post("t", "c")
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_non_json_body_is_an_error():
    async with _client(lambda r: httpx.Response(200, text="<html>maintenance</html>")) as wp:
        with pytest.raises(RemoteServiceError):
            await wp.get_post(1)


@pytest.mark.asyncio
async def test_delete_post_forces_permanent_delete():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"deleted": True, "previous": {"id": 5}})

    async with _client(handler) as wp:
        result = await wp.delete_post(5)

    assert result["deleted"] is True
    (request,) = seen
    assert request.method == "DELETE"
    assert request.url.path == "/wp-json/wp/v2/posts/5"
    assert request.url.params["force"] == "true"


@pytest.mark.asyncio
@pytest.mark.parametrize("method_name,path", [("get_categories", "/categories"), ("get_tags", "/tags")])
async def test_taxonomy_listing_asks_for_full_page(method_name, path):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "name": "Gardening"}])

    async with _client(handler) as wp:
        terms = await getattr(wp, method_name)()

    assert terms == [{"id": 1, "name": "Gardening"}]
    (request,) = seen
    assert request.method == "GET"
    assert request.url.path == f"/wp-json/wp/v2{path}"
    assert request.url.params["per_page"] == "100"


@pytest.mark.asyncio
async def test_create_category_sends_name_and_description():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"id": 9, "name": "Herbs"})

    async with _client(handler) as wp:
        category = await wp.create_category("Herbs", description="Growing herbs")
        await wp.create_category("Houseplants")

    assert category["id"] == 9
    first, second = seen
    assert first.method == "POST"
    assert first.url.path == "/wp-json/wp/v2/categories"
    assert json.loads(first.content) == {"name": "Herbs", "description": "Growing herbs"}
    assert json.loads(second.content) == {"name": "Houseplants"}


@pytest.mark.asyncio
async def test_create_tag_posts_name():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"id": 11, "name": "basil"})

    async with _client(handler) as wp:
        tag = await wp.create_tag("basil")

    assert tag["id"] == 11
    (request,) = seen
    assert request.method == "POST"
    assert request.url.path == "/wp-json/wp/v2/tags"
    assert json.loads(request.content) == {"name": "basil"}
