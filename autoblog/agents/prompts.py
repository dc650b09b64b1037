"""
Prompt builders for the drafting, SEO and FAQ agents.
"""

from typing import Sequence

WRITER_SYSTEM_PROMPT = (
    "You are a professional content writer specializing in SEO-optimized blog posts. "
    "You write clean, semantic HTML and never wrap it in markdown."
)

# How much of the draft the metadata prompts see
SEO_EXCERPT_CHARS = 1000
FAQ_EXCERPT_CHARS = 1500


def build_blog_post_prompt(topic: str, keywords: Sequence[str], word_count: int) -> str:
    keyword_line = ", ".join(keywords) if keywords else "(none, choose natural phrasing)"
    return f"""Write a {word_count}-word blog post about "{topic}".

Include these keywords naturally: {keyword_line}.

Format the content in HTML with:
- An engaging introduction
- Clear headings (h2, h3)
- Well-structured paragraphs
- Bullet points or numbered lists where appropriate
- A strong conclusion

Focus on providing valuable, actionable information.
Return only the HTML body content: no <html>, <head> or <body> tags, no commentary."""


def _excerpt(draft_html: str, limit: int) -> str:
    if len(draft_html) <= limit:
        return draft_html
    return draft_html[:limit] + "..."


def build_seo_prompt(draft_html: str) -> str:
    return f"""Analyze this blog post content and generate SEO metadata:

{_excerpt(draft_html, SEO_EXCERPT_CHARS)}

Generate:
1. An SEO-optimized meta title (55-60 characters, never more than 60)
2. A compelling meta description (150-160 characters)
3. 5-7 relevant tags

Return only JSON, with no other text:
{{"title": "...", "description": "...", "tags": ["tag1", "tag2"]}}"""


def build_faq_prompt(draft_html: str) -> str:
    return f"""Based on this blog post content, generate 3-5 FAQ questions and answers for structured data:

{_excerpt(draft_html, FAQ_EXCERPT_CHARS)}

Return only JSON, with no other text:
{{"faqs": [{{"question": "...", "answer": "..."}}]}}"""
