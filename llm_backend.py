"""
llm_backend.py
--------------
CampusGuide - Campus Directory Assistant - Generative text backend
-------------------------------------------------------------------
Thin, deadline-aware wrapper around the Claude chat model. Every caller in
the agent supplies its own timeout (already derived from the request
budget); this module only enforces it and normalises the outcome.

Contract:
    generate(prompt, timeout_ms) -> str | None

    Returns the stripped response text, or None when:
      - timeout_ms <= 0 (no call is issued at all),
      - the call exceeds timeout_ms (the in-flight request is cancelled),
      - the model stops with a safety refusal,
      - the payload has no usable text,
      - the upstream call raises for any other reason.

There are no retries here (the client is built with max_retries=0); the
caller decides what None means, which in this service is always "degrade".

Project: CampusGuide - Campus Directory Assistant
"""

import asyncio
import logging
import os
from typing import Any, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from langsmith import traceable

from config import LLM_MAX_TOKENS, LLM_MODEL

logger = logging.getLogger(__name__)

# Anthropic stop_reason emitted when the model declines on safety grounds.
_REFUSAL_STOP_REASONS = {"refusal"}


def _content_to_text(content: Any) -> str:
    """
    Convert a chat message's content (string or list of content blocks) to
    plain text. Unknown shapes yield an empty string.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text") or "")
        return "".join(parts)
    return ""


class TextBackend:
    """
    Generative backend with per-call timeouts.

    Args:
        llm: Any LangChain chat model exposing ``ainvoke``. Defaults to a
             ChatAnthropic client configured from the environment.
    """

    def __init__(self, llm: Optional[Any] = None) -> None:
        self._llm = llm

    @property
    def llm(self) -> Any:
        """Chat model, created on first use so importing the server needs no API key."""
        if self._llm is None:
            kwargs = {}
            api_key = os.getenv("ANTHROPIC_API_KEY")
            if api_key:
                kwargs["anthropic_api_key"] = api_key
            self._llm = ChatAnthropic(
                model=LLM_MODEL,
                temperature=0.7,
                max_tokens=LLM_MAX_TOKENS,
                max_retries=0,
                **kwargs,
            )
        return self._llm

    @traceable(name="text_backend.generate")
    async def generate(self, prompt: str, timeout_ms: int) -> Optional[str]:
        """
        Send one prompt and wait at most timeout_ms for the answer.

        Raises:
            Never - every failure is logged and returned as None.
        """
        if timeout_ms <= 0:
            logger.warning("TextBackend: refusing to call with non-positive allowance (%dms)", timeout_ms)
            return None

        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke([HumanMessage(content=prompt)]),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning("TextBackend: generation timed out after %dms", timeout_ms)
            return None
        except Exception as e:
            logger.error("TextBackend: generation failed: %s", e)
            return None

        metadata = getattr(response, "response_metadata", None) or {}
        stop_reason = metadata.get("stop_reason") if isinstance(metadata, dict) else None
        if stop_reason in _REFUSAL_STOP_REASONS:
            logger.warning("TextBackend: model declined to answer (stop_reason=%s)", stop_reason)
            return None

        text = _content_to_text(getattr(response, "content", None)).strip()
        if not text:
            logger.error("TextBackend: malformed or empty payload from backend: %r", response)
            return None

        logger.info("TextBackend: received %d chars", len(text))
        return text
