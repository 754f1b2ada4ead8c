"""
test_llm_backend.py
-------------------
CampusGuide - Campus Directory Assistant - Tests for TextBackend
-----------------------------------------------------------------
The chat model is replaced by a stub exposing ``ainvoke``. No real API
calls are made.

Tests cover:
    - text is returned stripped; content-block lists are joined
    - non-positive timeout issues no call
    - timeout returns None and cancels the in-flight call
    - safety refusal, empty payload and upstream errors return None

Run:
    pytest tests/test_llm_backend.py -v --tb=short

Project: CampusGuide - Campus Directory Assistant
"""

import asyncio
import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from langchain_core.messages import AIMessage

from llm_backend import TextBackend


class _SlowLLM:
    """ainvoke sleeps longer than any test timeout and records cancellation."""

    def __init__(self):
        self.cancelled = False

    async def ainvoke(self, messages):
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return AIMessage(content="too late")


def _llm_returning(message):
    llm = AsyncMock()
    llm.ainvoke = AsyncMock(return_value=message)
    return llm


def test_returns_stripped_text():
    llm = _llm_returning(AIMessage(content="  Office E-512!  \n"))
    assert asyncio.run(TextBackend(llm).generate("prompt", 1000)) == "Office E-512!"
    sent = llm.ainvoke.call_args.args[0]
    assert sent[0].content == "prompt"


def test_joins_content_blocks():
    llm = _llm_returning(AIMessage(content=[{"type": "text", "text": "Hello "}, {"type": "text", "text": "there"}]))
    assert asyncio.run(TextBackend(llm).generate("prompt", 1000)) == "Hello there"


def test_non_positive_timeout_makes_no_call():
    llm = _llm_returning(AIMessage(content="x"))
    assert asyncio.run(TextBackend(llm).generate("prompt", 0)) is None
    llm.ainvoke.assert_not_called()


def test_timeout_returns_none_and_cancels():
    llm = _SlowLLM()
    assert asyncio.run(TextBackend(llm).generate("prompt", 30)) is None
    assert llm.cancelled is True


def test_safety_refusal_returns_none():
    message = AIMessage(content="I can't help with that.", response_metadata={"stop_reason": "refusal"})
    assert asyncio.run(TextBackend(_llm_returning(message)).generate("prompt", 1000)) is None


def test_empty_payload_returns_none():
    assert asyncio.run(TextBackend(_llm_returning(AIMessage(content=""))).generate("prompt", 1000)) is None
    assert asyncio.run(TextBackend(_llm_returning(SimpleNamespace(content=[{"type": "tool_use", "id": "t"}], response_metadata={}))).generate("p", 1000)) is None


def test_upstream_error_returns_none():
    llm = AsyncMock()
    llm.ainvoke = AsyncMock(side_effect=RuntimeError("500 upstream"))
    assert asyncio.run(TextBackend(llm).generate("prompt", 1000)) is None
