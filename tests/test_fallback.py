"""
test_fallback.py
----------------
CampusGuide - Campus Directory Assistant - Tests for the out-of-scope refusal
------------------------------------------------------------------------------
Run:
    pytest tests/test_fallback.py -v --tb=short

Project: CampusGuide - Campus Directory Assistant
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from campus_guidelines import CANNED_REFUSAL_MESSAGE
from directory_agent.fallback_node import build_refusal_prompt, generate_refusal
from tests.fakes import FakeBackend


def test_prompt_quotes_question_and_forbids_answering():
    prompt = build_refusal_prompt("Write me a poem about the weather")
    assert '"Write me a poem about the weather"' in prompt
    assert "NEVER try to answer the question" in prompt


def test_backend_text_is_used():
    backend = FakeBackend(["  Ha, I only know teachers, not the weather!  "])
    text = asyncio.run(generate_refusal(backend, "Will it rain?", 3000))
    assert text == "Ha, I only know teachers, not the weather!"
    assert backend.calls[0][1] == 3000


def test_silent_backend_gets_canned_refusal():
    assert asyncio.run(generate_refusal(FakeBackend([None]), "Will it rain?", 3000)) == CANNED_REFUSAL_MESSAGE


def test_raising_backend_gets_canned_refusal():
    def boom(prompt, timeout_ms):
        raise RuntimeError("down")

    assert asyncio.run(generate_refusal(FakeBackend([boom]), "Will it rain?", 3000)) == CANNED_REFUSAL_MESSAGE
