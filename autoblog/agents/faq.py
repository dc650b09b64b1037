"""
FAQAgent: question/answer pairs for FAQ structured data.
"""

from typing import Annotated, List

from pydantic import BaseModel, StringConstraints, TypeAdapter, ValidationError

from autoblog.agents.base import LLMAgent
from autoblog.agents.prompts import build_faq_prompt
from autoblog.errors import LLMResponseError

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class FAQItem(BaseModel):
    question: NonBlank
    answer: NonBlank


_FAQ_LIST = TypeAdapter(List[FAQItem])


class FAQAgent(LLMAgent):
    """
    Generates FAQ entries for a draft.

    Accepts either a bare JSON array or an object with a "faqs" array. The
    prompt asks for 3-5 entries but the count is not enforced.
    """

    name = "faq"
    TEMPERATURE = 0.6
    MAX_TOKENS = 2000

    async def generate(self, draft_html: str) -> List[FAQItem]:
        text = await self._complete(build_faq_prompt(draft_html))
        data = self._parse_json(text)

        if isinstance(data, dict):
            data = data.get("faqs")
        if not isinstance(data, list):
            raise LLMResponseError("FAQ response does not contain a list of entries", raw_response=text)

        try:
            return _FAQ_LIST.validate_python(data)
        except ValidationError as e:
            raise LLMResponseError(
                f"FAQ entries have an unexpected shape ({e.error_count()} problems)",
                raw_response=text,
            ) from e
