"""
test_response_node.py
---------------------
CampusGuide - Campus Directory Assistant - Tests for the Tiered Response Generator
-----------------------------------------------------------------------------------
Tests cover:
    - tier ordering by remaining budget (FULL / QUICK / TEMPLATE)
    - per-tier allowance = remaining - tier safety margin
    - degradation: one generative attempt, then TEMPLATE (never FULL -> QUICK)
    - keyword focus routing for TEMPLATE answers
    - prompt contents (focus, shared titles, correction note, injection guard)

Run:
    pytest tests/test_response_node.py -v --tb=short

Project: CampusGuide - Campus Directory Assistant
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from config import BudgetPolicy
from schemas import Tier
from directory_agent.deadline import DeadlineTracker
from directory_agent.response_node import (
    FOCUS_COURSES,
    FOCUS_GENERAL,
    FOCUS_OFFICE,
    TieredResponseGenerator,
    build_full_prompt,
    build_quick_prompt,
    build_template_response,
    classify_focus,
    select_tier,
)
from tests.fakes import FakeBackend, FakeClock, make_record

POLICY = BudgetPolicy(full_threshold_ms=2800, quick_threshold_ms=1500)


def _generator(backend, remaining_ms):
    clock = FakeClock()
    tracker = DeadlineTracker(POLICY.total_ms, clock=clock)
    clock.advance(POLICY.total_ms - remaining_ms)
    return TieredResponseGenerator(backend, tracker, POLICY)


class TestSelectTier:
    @pytest.mark.parametrize("remaining, expected", [
        (3200, Tier.FULL),
        (2800, Tier.FULL),
        (2799, Tier.QUICK),
        (1800, Tier.QUICK),
        (1500, Tier.QUICK),
        (1499, Tier.TEMPLATE),
        (800, Tier.TEMPLATE),
        (0, Tier.TEMPLATE),
    ])
    def test_thresholds(self, remaining, expected):
        assert select_tier(remaining, 2800, 1500) is expected


class TestClassifyFocus:
    @pytest.mark.parametrize("text, expected", [
        ("Where is Yin Bang-yen's office?", FOCUS_OFFICE),
        ("What's the extension for Chen?", FOCUS_OFFICE),
        ("What courses does Lin teach?", FOCUS_COURSES),
        ("Which classes is she teaching this term?", FOCUS_COURSES),
        ("Where can I find the class Lin teaches?", FOCUS_OFFICE),
        ("Tell me about Yin Bang-yen", FOCUS_GENERAL),
        ("尹邦嚴老師的辦公室在哪", FOCUS_OFFICE),
        ("王大明教什麼課", FOCUS_COURSES),
        ("", FOCUS_GENERAL),
    ])
    def test_focus(self, text, expected):
        assert classify_focus(text) == expected


class TestTemplate:
    def test_office_question_excludes_courses(self):
        answer = build_template_response("Where is his office?", make_record())
        assert "E-512" in answer
        assert "3325" in answer
        assert "Data Structures" not in answer
        assert "Operating Systems" not in answer

    def test_course_question_lists_titles(self):
        answer = build_template_response("What does he teach?", make_record())
        assert "Data Structures" in answer
        assert "Operating Systems" in answer

    def test_course_question_without_courses_gives_office(self):
        answer = build_template_response("What courses?", make_record(courses=[]))
        assert "E-512" in answer
        assert "3325" in answer

    def test_general_summary(self):
        answer = build_template_response("Tell me about him", make_record())
        assert answer == (
            "Found it! Yin Bang-yen is in E-512, extension 3325, "
            "and teaches Data Structures plus 2 more courses!"
        )

    def test_missing_fields_still_produce_text(self):
        answer = build_template_response("Tell me about her", make_record(office_location="", extension="", courses=[]))
        assert answer.startswith("Found it! Yin Bang-yen")
        assert "not listed" in answer


class TestPrompts:
    def test_full_prompt_carries_focus_and_shared_titles(self):
        prompt = build_full_prompt("What courses does he teach?", make_record())
        assert "focus on the courses" in prompt
        assert "Data Structures" in prompt
        assert "CS2031" in prompt and "CS2032" in prompt
        assert "different codes: Data Structures" in prompt
        assert '"What courses does he teach?"' in prompt

    def test_full_prompt_correction_note(self):
        prompt = build_full_prompt("Where?", make_record(), ("Yin Bang-ching", "Yin Bang-yen"))
        assert 'typed "Yin Bang-ching"' in prompt
        assert '"Yin Bang-yen"' in prompt

    def test_quick_prompt_is_compact(self):
        record = make_record()
        assert len(build_quick_prompt("Where?", record)) < len(build_full_prompt("Where?", record))
        assert "CS2031" not in build_quick_prompt("Where?", record)


class TestGenerator:
    def test_full_tier_with_allowance(self):
        backend = FakeBackend(["Professor Yin is in E-512!"])
        outcome = asyncio.run(_generator(backend, 3200).generate("Where is Yin?", make_record()))
        assert outcome.candidate.tier is Tier.FULL
        assert outcome.attempted_tier is Tier.FULL
        assert outcome.candidate.text == "Professor Yin is in E-512!"
        assert backend.calls[0][1] == 3200 - POLICY.full_safety_margin_ms

    def test_quick_tier(self):
        backend = FakeBackend(["E-512, ext 3325."])
        outcome = asyncio.run(_generator(backend, 1800).generate("Where is Yin?", make_record()))
        assert outcome.candidate.tier is Tier.QUICK
        assert backend.calls[0][1] == 1800 - POLICY.quick_safety_margin_ms

    def test_template_tier_makes_no_call(self):
        backend = FakeBackend(["unused"])
        outcome = asyncio.run(_generator(backend, 800).generate("Where is Yin?", make_record()))
        assert outcome.candidate.tier is Tier.TEMPLATE
        assert outcome.attempted_tier is Tier.TEMPLATE
        assert backend.calls == []
        assert "E-512" in outcome.candidate.text

    @pytest.mark.parametrize("reply", [None, "", "   "])
    def test_full_failure_degrades_straight_to_template(self, reply):
        backend = FakeBackend([reply, "should never be used"])
        outcome = asyncio.run(_generator(backend, 3200).generate("Where is Yin?", make_record()))
        assert len(backend.calls) == 1
        assert outcome.attempted_tier is Tier.FULL
        assert outcome.candidate.tier is Tier.TEMPLATE
        assert outcome.candidate.text.startswith("Found it!")

    def test_backend_exception_degrades(self):
        def boom(prompt, timeout_ms):
            raise RuntimeError("boom")

        outcome = asyncio.run(_generator(FakeBackend([boom]), 1800).generate("Where?", make_record()))
        assert outcome.attempted_tier is Tier.QUICK
        assert outcome.candidate.tier is Tier.TEMPLATE

    def test_correction_reaches_prompt(self):
        backend = FakeBackend(["ok"])
        asyncio.run(_generator(backend, 3200).generate("Where?", make_record(), ("Yin Bang-ching", "Yin Bang-yen")))
        assert "Yin Bang-ching" in backend.calls[0][0]
