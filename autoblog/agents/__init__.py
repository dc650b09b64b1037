"""
Text-generation agents for the content pipeline.

Flow for one generation job:
  topic + keywords → BlogWriterAgent (draft HTML)
                   → SEOAgent  (title / description / tags)  ┐ concurrently
                   → FAQAgent  (question / answer pairs)     ┘
"""

from autoblog.agents.base import LLMAgent
from autoblog.agents.writer import BlogWriterAgent, DraftResult
from autoblog.agents.seo import SEOAgent, SEOMetadata, SEO_TITLE_MAX_CHARS
from autoblog.agents.faq import FAQAgent, FAQItem

__all__ = [
    "LLMAgent",
    "BlogWriterAgent",
    "DraftResult",
    "SEOAgent",
    "SEOMetadata",
    "SEO_TITLE_MAX_CHARS",
    "FAQAgent",
    "FAQItem",
]
