"""
SEOAgent: derives meta title, meta description and tags from a draft.

The answer must be a JSON object of exactly the expected shape; anything
else fails the step instead of falling back to defaults.
"""

from typing import List

from pydantic import BaseModel, Field, ValidationError, field_validator

from autoblog.agents.base import LLMAgent
from autoblog.agents.prompts import build_seo_prompt
from autoblog.errors import LLMResponseError

SEO_TITLE_MAX_CHARS = 60


def trim_title(title: str, limit: int = SEO_TITLE_MAX_CHARS) -> str:
    """Collapse whitespace and cut to `limit` characters on a word boundary."""
    title = " ".join(title.split())
    if len(title) <= limit:
        return title
    head = title[:limit + 1]
    cut = head.rsplit(" ", 1)[0] if " " in head else title[:limit]
    return cut[:limit].rstrip(" -:|,;")


class SEOMetadata(BaseModel):
    title: str = Field(min_length=1)
    description: str
    tags: List[str] = Field(min_length=1)

    @field_validator("title")
    @classmethod
    def fit_title(cls, v: str) -> str:
        v = trim_title(v)
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("description")
    @classmethod
    def clean_description(cls, v: str) -> str:
        return " ".join(v.split())

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: List[str]) -> List[str]:
        seen = set()
        tags = []
        for tag in v:
            tag = tag.strip()
            if tag and tag.lower() not in seen:
                seen.add(tag.lower())
                tags.append(tag)
        if not tags:
            raise ValueError("at least one non-blank tag is required")
        return tags


class SEOAgent(LLMAgent):
    """Generates SEO metadata for a draft."""

    name = "seo"
    TEMPERATURE = 0.5
    MAX_TOKENS = 1000

    async def generate(self, draft_html: str) -> SEOMetadata:
        """
        Raises:
            LLMResponseError: the answer is not a valid SEO metadata object
            RemoteServiceError: the call itself failed
        """
        text = await self._complete(build_seo_prompt(draft_html))
        data = self._parse_json(text)
        try:
            return SEOMetadata.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'response'}: {err['msg']}"
                for err in e.errors()
            )
            raise LLMResponseError(
                f"SEO metadata has an unexpected shape: {problems}",
                raw_response=text,
            ) from e
