"""
test_workflow.py
----------------
CampusGuide - Campus Directory Assistant - Orchestrator end-to-end tests
-------------------------------------------------------------------------
Drives DirectoryOrchestrator.handle_query through every branch with an
in-memory store, a scripted backend and a manual clock.

Tests cover:
    - direct hit answered at FULL
    - empty name short-circuits with no store or backend calls
    - correction round trip: miss -> suggestion -> re-resolve -> answer
      with the advisor's reply as the acknowledgment
    - TEMPLATE answers after a correction carry the fixed sentence and a bridge line
    - ABORT on no match, on a silent corrector, on an empty roster, and
      when the suggested name is not in the directory
    - budget pressure: correction allowance, tier drop to QUICK, corrector
      skipped when the response reserve would be eaten
    - degradation to TEMPLATE and the generic apology on unexpected faults
      or a graph that stops outside a terminal phase
    - a disconnected DirectoryStore behaves as an empty directory

Run:
    pytest tests/test_workflow.py -v --tb=short

Project: CampusGuide - Campus Directory Assistant
"""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from campus_guidelines import ASK_FOR_NAME_MESSAGE, GENERIC_ERROR_MESSAGE, TEMPLATE_BRIDGE_MESSAGE
from config import BudgetPolicy
from directory_store import DirectoryStore
from schemas import Query, Tier
from directory_agent.response_node import TieredResponseGenerator
from directory_agent.state import PHASE_RESPONDING
from directory_agent.workflow import (
    PHASE_ERROR,
    PHASE_SHORT_CIRCUIT,
    DirectoryOrchestrator,
    _with_correction,
    correction_acknowledgment,
)
from tests.fakes import FakeBackend, FakeClock, FakeStore, make_record

POLICY = BudgetPolicy(full_threshold_ms=2800, quick_threshold_ms=1500)


class _SlowStore(FakeStore):
    """Every lookup costs ``cost_ms`` on the shared fake clock."""

    def __init__(self, clock, cost_ms, records):
        super().__init__(records)
        self.clock = clock
        self.cost_ms = cost_ms

    async def find_by_approximate_name(self, name):
        self.clock.advance(self.cost_ms)
        return await super().find_by_approximate_name(name)


def _ask(store, backend, name, text="Where is the office?", clock=None):
    orchestrator = DirectoryOrchestrator(store, backend, POLICY, clock=clock or FakeClock())
    return asyncio.run(orchestrator.handle_query(Query(raw_text=text, extracted_name=name)))


class TestHappyPath:
    def test_direct_hit_full_tier(self):
        store = FakeStore([make_record()])
        backend = FakeBackend(["Professor Yin is in E-512, ext 3325!"])
        reply = _ask(store, backend, "Yin Bang-yen")
        assert reply.phase == "DONE"
        assert reply.tier is Tier.FULL
        assert reply.text == "Professor Yin is in E-512, ext 3325!"
        assert reply.corrected_name is None
        assert store.lookups == ["Yin Bang-yen"]
        assert store.list_calls == 0
        assert len(backend.calls) == 1

    def test_degrades_to_template(self):
        backend = FakeBackend([None])
        reply = _ask(FakeStore([make_record()]), backend, "Yin Bang-yen")
        assert reply.phase == "DONE"
        assert reply.tier is Tier.TEMPLATE
        assert reply.text.startswith("Found it! Yin Bang-yen's office is E-512")
        assert len(backend.calls) == 1


class TestShortCircuit:
    def test_empty_name_asks_for_one(self):
        store = FakeStore([make_record()])
        backend = FakeBackend(["unused"])
        reply = _ask(store, backend, "   ")
        assert reply.text == ASK_FOR_NAME_MESSAGE
        assert reply.phase == PHASE_SHORT_CIRCUIT
        assert store.lookups == []
        assert backend.calls == []


class TestCorrection:
    def test_round_trip(self):
        store = FakeStore([make_record()])
        advisory = '"Yin Bang-ching"? Did your keyboard slip? Do you mean **Yin Bang-yen**? 😄'
        backend = FakeBackend([advisory, "Professor Yin's office is E-512."])
        reply = _ask(store, backend, "Yin Bang-ching")

        assert store.lookups == ["Yin Bang-ching", "Yin Bang-yen"]
        assert reply.phase == "DONE"
        assert reply.tier is Tier.FULL
        assert reply.corrected_name == "Yin Bang-yen"
        assert "Yin Bang-ching" in reply.text
        assert "Yin Bang-yen" in reply.text
        assert reply.text == f"{advisory}\n\nProfessor Yin's office is E-512."
        # the generative prompt is told about the mix-up as well
        assert "Yin Bang-ching" in backend.calls[1][0]

    def test_template_answer_after_correction_gets_fixed_sentence_and_bridge(self):
        backend = FakeBackend(["Do you mean **Yin Bang-yen**?", None])
        reply = _ask(FakeStore([make_record()]), backend, "Yin Bang-ching")
        assert reply.tier is Tier.TEMPLATE
        assert reply.text == (
            f"{correction_acknowledgment('Yin Bang-ching', 'Yin Bang-yen')}\n\n"
            f"{TEMPLATE_BRIDGE_MESSAGE}\n"
            "Found it! Yin Bang-yen's office is E-512, and the extension is 3325."
        )

    def test_blank_advisory_falls_back_to_fixed_sentence(self):
        text = _with_correction("Body.", Tier.QUICK, ("Yin Bang-ching", "Yin Bang-yen"), "   ")
        assert text == f"{correction_acknowledgment('Yin Bang-ching', 'Yin Bang-yen')}\n\nBody."

    def test_no_match_relays_advisory(self):
        advisory = "Nobody by that name here, maybe check the spelling?"
        backend = FakeBackend([advisory])
        reply = _ask(FakeStore([make_record()]), backend, "Zhang San")
        assert reply.phase == "ABORT"
        assert reply.tier is None
        assert reply.text == advisory
        assert len(backend.calls) == 1

    def test_silent_corrector(self):
        reply = _ask(FakeStore([make_record()]), FakeBackend([None]), "Zhang San")
        assert reply.phase == "ABORT"
        assert '"Zhang San"' in reply.text

    def test_empty_roster_skips_backend(self):
        store = FakeStore([])
        backend = FakeBackend(["**Yin Bang-yen**"])
        reply = _ask(store, backend, "Yin Bang-yen")
        assert reply.phase == "ABORT"
        assert "roster" in reply.text
        assert backend.calls == []
        assert store.list_calls == 1

    def test_suggested_name_missing_from_directory(self):
        store = FakeStore([make_record()], names=["Yin Bang-yen", "Ghost Teacher"])
        backend = FakeBackend(["You mean **Ghost Teacher**?"])
        reply = _ask(store, backend, "Ghost Teachr")
        assert reply.phase == "ABORT"
        assert "Ghost Teacher" in reply.text
        assert store.lookups == ["Ghost Teachr", "Ghost Teacher"]
        assert reply.corrected_name is None


class TestBudget:
    def test_correction_allowance_and_quick_tier(self):
        clock = FakeClock()

        def slow_suggestion(prompt, timeout_ms):
            clock.advance(2200)
            return "Do you mean **Yin Bang-yen**?"

        backend = FakeBackend([slow_suggestion, "E-512, ext 3325."])
        reply = _ask(FakeStore([make_record()]), backend, "Yin Bang-ching", clock=clock)

        # min(2500, 4700 - 1500) - 100
        assert backend.calls[0][1] == 2400
        assert reply.tier is Tier.QUICK
        # 2500 remaining - 300 margin
        assert backend.calls[1][1] == 2200

    def test_corrector_skipped_when_reserve_would_be_eaten(self):
        clock = FakeClock()
        store = _SlowStore(clock, 3300, [make_record()])
        backend = FakeBackend(["**Yin Bang-yen**"])
        reply = _ask(store, backend, "Yin Bang-ching", clock=clock)
        assert backend.calls == []
        assert reply.phase == "ABORT"

    def test_late_hit_goes_straight_to_template(self):
        clock = FakeClock()
        store = _SlowStore(clock, 4000, [make_record()])
        backend = FakeBackend(["unused"])
        reply = _ask(store, backend, "Yin Bang-yen", clock=clock)
        assert reply.tier is Tier.TEMPLATE
        assert backend.calls == []


class TestFaults:
    def test_unexpected_fault_becomes_generic_apology(self):
        with patch.object(TieredResponseGenerator, "generate", new=AsyncMock(side_effect=RuntimeError("boom"))):
            reply = _ask(FakeStore([make_record()]), FakeBackend(["unused"]), "Yin Bang-yen")
        assert reply.text == GENERIC_ERROR_MESSAGE
        assert reply.phase == PHASE_ERROR

    def test_non_terminal_graph_result_becomes_generic_apology(self):
        graph = AsyncMock()
        graph.ainvoke = AsyncMock(return_value={"phase": PHASE_RESPONDING, "final_response": "half an answer"})
        with patch("directory_agent.workflow.build_graph", return_value=graph):
            reply = _ask(FakeStore([make_record()]), FakeBackend(["unused"]), "Yin Bang-yen")
        assert reply.text == GENERIC_ERROR_MESSAGE
        assert reply.phase == PHASE_ERROR

    def test_disconnected_store_is_an_empty_directory(self, tmp_path):
        store = DirectoryStore(tmp_path / "never_connected.sqlite")
        backend = FakeBackend(["**Yin Bang-yen**"])
        reply = _ask(store, backend, "Yin Bang-yen")
        assert reply.phase == "ABORT"
        assert backend.calls == []
