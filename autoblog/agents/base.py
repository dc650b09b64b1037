"""
Shared plumbing for the text-generation agents.

Every agent call goes through LLMAgent._complete(), which applies the
per-call timeout and turns provider failures into RemoteServiceError so
the worker pool can decide whether to retry.
"""

import asyncio
import json
import time
from typing import Any, List, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from autoblog.errors import LLMResponseError, RemoteServiceError
from autoblog.utils.logging import llm_logger as logger

# HTTP statuses from the provider worth another attempt
RETRYABLE_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504, 529}


def strip_outer_fence(text: str) -> str:
    """
    Remove a ```lang ... ``` block wrapped around the whole answer.

    Fences inside the text are content and are left alone.
    """
    text = text.strip()
    if not text.startswith("```"):
        return text
    body = text[3:]
    # Drop the language tag line, e.g. ```html
    first_line, _, rest = body.partition("\n")
    if not first_line.strip() or first_line.strip().isalpha():
        body = rest
    body = body.rstrip()
    if body.endswith("```"):
        body = body[:-3]
    return body.strip()


def strip_code_fences(text: str) -> str:
    """Pull a JSON answer out of a code fence, wherever the model put it."""
    text = text.strip()
    if text.startswith("```"):
        return strip_outer_fence(text)
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()
    return text


def message_text(content: Any) -> str:
    """Flatten AIMessage.content, which may be a string or a list of blocks."""
    if isinstance(content, str):
        return content
    parts: List[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class LLMAgent:
    """
    Base class for agents backed by a chat model.

    The model can be injected (anything with an async ``ainvoke(messages)``);
    otherwise a ChatAnthropic client is built from the given settings.
    Provider-side retries are disabled because the worker pool owns retries.
    """

    name = "llm"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.5
    MAX_TOKENS = 2000

    def __init__(
        self,
        llm: Any = None,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: float = 120.0
    ):
        self.model_name = model_name or self.DEFAULT_MODEL
        self.timeout = timeout
        self.max_tokens = max_tokens or self.MAX_TOKENS

        if llm is None:
            kwargs = {
                "model": self.model_name,
                "temperature": self.TEMPERATURE if temperature is None else temperature,
                "max_tokens": self.max_tokens,
                "timeout": timeout,
                "max_retries": 0,
            }
            if api_key:
                kwargs["anthropic_api_key"] = api_key
            llm = ChatAnthropic(**kwargs)
        self.llm = llm

    async def _complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Send one prompt and return the response text.

        Args:
            max_tokens: Output limit for this call only; the agent's limit otherwise

        Raises:
            RemoteServiceError: provider error or timeout
            LLMResponseError: empty or truncated response
        """
        messages: List[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        llm = self.llm.bind(max_tokens=max_tokens) if max_tokens else self.llm

        start_time = time.time()
        try:
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise RemoteServiceError(
                f"{self.name} call timed out after {self.timeout:.0f}s",
                service="llm",
            ) from e
        except RemoteServiceError:
            raise
        except Exception as e:
            status = getattr(e, "status_code", None)
            raise RemoteServiceError(
                f"{self.name} call failed: {e}",
                service="llm",
                status_code=status,
                retryable=status is None or status in RETRYABLE_STATUS_CODES,
            ) from e

        text = message_text(response.content)
        logger.debug(
            "LLM call finished",
            agent=self.name,
            model=self.model_name,
            seconds=round(time.time() - start_time, 2),
            chars=len(text),
        )
        if not text.strip():
            raise LLMResponseError(f"{self.name} returned an empty response")

        metadata = getattr(response, "response_metadata", None) or {}
        if metadata.get("stop_reason") == "max_tokens":
            raise LLMResponseError(
                f"{self.name} response was cut off at the token limit",
                raw_response=text,
            )
        return text

    def _parse_json(self, text: str) -> Any:
        """Parse a JSON answer, tolerating a markdown code fence around it."""
        try:
            return json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            raise LLMResponseError(
                f"{self.name} response is not valid JSON: {e.msg}",
                raw_response=text,
            ) from e
