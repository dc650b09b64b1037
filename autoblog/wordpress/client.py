"""
WordPress REST API client.

Thin async wrapper over /wp-json/wp/v2. The credential is opaque to the
rest of the app: either a pre-issued bearer token or a username plus
application password turned into a Basic header.

Every failure comes out as RemoteServiceError; 4xx answers other than
408/429 are marked non-retryable since repeating them cannot help.
"""

import base64
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from autoblog.config import AppConfig
from autoblog.errors import RemoteServiceError
from autoblog.utils.logging import wordpress_logger as logger

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

WP_MAX_PER_PAGE = 100


def build_auth_header(
    token: Optional[str] = None,
    username: Optional[str] = None,
    app_password: Optional[str] = None
) -> str:
    if token:
        return f"Bearer {token}"
    if username and app_password:
        encoded = base64.b64encode(f"{username}:{app_password}".encode()).decode()
        return f"Basic {encoded}"
    raise ValueError("WordPress credentials missing: set a token or username + application password")


class WordPressClient:
    """
    Usage:
        async with WordPressClient("https://blog.example.com", token="...") as wp:
            post = await wp.create_post("Title", "<p>Body</p>", status="draft")
            await wp.schedule_post(post["id"], datetime(2026, 1, 1, tzinfo=timezone.utc))
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        username: Optional[str] = None,
        app_password: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_base = f"{base_url.rstrip('/')}/wp-json/wp/v2"
        self._client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={
                "Authorization": build_auth_header(token, username, app_password),
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "WordPressClient":
        if not config.wordpress_configured:
            raise ValueError("WordPress is not configured (WORDPRESS_URL and credentials)")
        return cls(
            config.WORDPRESS_URL,
            token=config.WORDPRESS_TOKEN,
            username=config.WORDPRESS_USERNAME,
            app_password=config.WORDPRESS_APP_PASSWORD,
            timeout=config.WORDPRESS_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "WordPressClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise RemoteServiceError(f"{method} {path} timed out", service="wordpress") from e
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"{method} {path} failed: {e}", service="wordpress") from e

        if response.status_code >= 400:
            logger.warning(
                "WordPress request rejected",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise RemoteServiceError(
                _error_message(response),
                service="wordpress",
                status_code=response.status_code,
                retryable=response.status_code in RETRYABLE_STATUS_CODES,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"{method} {path} returned a non-JSON body",
                service="wordpress",
                status_code=response.status_code,
            ) from e

    # =========================================================================
    # Posts
    # =========================================================================

    async def create_post(
        self,
        title: str,
        content: str,
        status: str = "draft",
        excerpt: Optional[str] = None,
        categories: Optional[List[int]] = None,
        tags: Optional[List[int]] = None
    ) -> Dict[str, Any]:
        """
        Create a post.

        Returns:
            The WordPress post representation (``id``, ``link``, ``status``, ...)
        """
        data: Dict[str, Any] = {"title": title, "content": content, "status": status}
        if excerpt:
            data["excerpt"] = excerpt
        if categories:
            data["categories"] = categories
        if tags:
            data["tags"] = tags

        post = await self._request("POST", "/posts", json=data)
        if not isinstance(post, dict) or "id" not in post:
            raise RemoteServiceError("Create post response has no post id", service="wordpress")

        logger.info("Post created", post_id=post["id"], status=post.get("status", status))
        return post

    async def update_post(self, post_id: int, **fields) -> Dict[str, Any]:
        return await self._request("PUT", f"/posts/{post_id}", json=fields)

    async def schedule_post(self, post_id: int, publish_at: datetime) -> Dict[str, Any]:
        """
        Set a post to `future` status with the given publication date.

        Timezone-aware datetimes are sent as GMT; naive ones are taken to
        be in the site's own timezone.
        """
        if publish_at.tzinfo is not None:
            gmt = publish_at.astimezone(timezone.utc).replace(tzinfo=None)
            fields = {"status": "future", "date_gmt": gmt.isoformat(timespec="seconds")}
        else:
            fields = {"status": "future", "date": publish_at.isoformat(timespec="seconds")}

        post = await self.update_post(post_id, **fields)
        logger.info("Post scheduled", post_id=post_id, publish_at=publish_at.isoformat())
        return post

    async def get_post(self, post_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/posts/{post_id}")

    async def delete_post(self, post_id: int, force: bool = True) -> Dict[str, Any]:
        return await self._request("DELETE", f"/posts/{post_id}", params={"force": str(force).lower()})

    # =========================================================================
    # Taxonomies
    # =========================================================================

    async def get_categories(self, per_page: int = WP_MAX_PER_PAGE) -> List[Dict[str, Any]]:
        return await self._request("GET", "/categories", params={"per_page": per_page})

    async def create_category(self, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        data = {"name": name}
        if description:
            data["description"] = description
        return await self._request("POST", "/categories", json=data)

    async def get_tags(self, per_page: int = WP_MAX_PER_PAGE) -> List[Dict[str, Any]]:
        return await self._request("GET", "/tags", params={"per_page": per_page})

    async def create_tag(self, name: str) -> Dict[str, Any]:
        return await self._request("POST", "/tags", json={"name": name})


def _error_message(response: httpx.Response) -> str:
    """Prefer WordPress's own {"code", "message"} error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        code = body.get("code")
        return f"{body['message']} ({code})" if code else str(body["message"])
    return response.reason_phrase
