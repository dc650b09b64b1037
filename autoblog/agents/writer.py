"""
BlogWriterAgent: drafts the HTML blog post.
"""

import math
import re
import time
from dataclasses import dataclass
from typing import Sequence

from autoblog.agents.base import LLMAgent, strip_outer_fence
from autoblog.agents.prompts import WRITER_SYSTEM_PROMPT, build_blog_post_prompt

_TAG_RE = re.compile(r"<[^>]+>")

# Output tokens allowed per requested word, markup included
TOKENS_PER_WORD = 1.5


def count_words(html: str) -> int:
    """Word count of the visible text of an HTML fragment."""
    return len(_TAG_RE.sub(" ", html).split())


@dataclass
class DraftResult:
    """Result from BlogWriterAgent."""
    html: str
    word_count: int
    model_used: str
    generation_time: float


class BlogWriterAgent(LLMAgent):
    """Writes the first and only draft of a post from topic and keywords."""

    name = "writer"
    TEMPERATURE = 0.7
    MAX_TOKENS = 16000

    def token_budget(self, word_count: int) -> int:
        """Output limit for a post of word_count words, capped at the agent's limit."""
        return min(math.ceil(word_count * TOKENS_PER_WORD), self.max_tokens)

    async def write(
        self,
        topic: str,
        keywords: Sequence[str],
        word_count: int
    ) -> DraftResult:
        """
        Draft a blog post.

        Args:
            topic: What the post is about
            keywords: Phrases to work in naturally, in priority order
            word_count: Target length in words

        Returns:
            DraftResult with the HTML body

        Raises:
            LLMResponseError: the draft hit the token budget and is incomplete
        """
        start_time = time.time()
        text = await self._complete(
            build_blog_post_prompt(topic, keywords, word_count),
            system=WRITER_SYSTEM_PROMPT,
            max_tokens=self.token_budget(word_count),
        )
        html = strip_outer_fence(text)

        return DraftResult(
            html=html,
            word_count=count_words(html),
            model_used=self.model_name,
            generation_time=time.time() - start_time
        )
