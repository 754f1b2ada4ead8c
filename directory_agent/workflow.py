"""
workflow.py
-----------
CampusGuide - Campus Directory Assistant - LangGraph orchestrator
------------------------------------------------------------------
Assembles the per-request LangGraph state machine and exposes
DirectoryOrchestrator.handle_query() as the single entry point for the
webhook.

Graph topology:
    START → resolve → (hit  → respond → END)
                      (miss → correct → (suggested → re_resolve → (hit  → respond → END)
                                                                  (miss → abort   → END))
                                        (no_match  → abort → END))

Every request gets its own DeadlineTracker, started before the first
lookup, and its own compiled graph whose nodes close over that tracker.
Stages run strictly in sequence; the only recovery mechanism inside a
request is tier fallback in the respond node, never repetition.

Exactly-one-response guarantee:
    - respond and abort are the only nodes that write final_response, and
      the graph routes into exactly one of them;
    - an empty name short-circuits before the graph runs;
    - any exception escaping the graph is caught in handle_query and turned
      into one generic apology.

Key functions:
    build_graph: Assemble and compile the StateGraph for one request.
    correction_acknowledgment: Fixed sentence naming both spellings.
    DirectoryOrchestrator.handle_query: Query -> DirectoryReply.

Project: CampusGuide - Campus Directory Assistant
"""

import logging
from typing import Callable, Optional, Tuple

from langgraph.graph import END, StateGraph
from langsmith import traceable

from campus_guidelines import ASK_FOR_NAME_MESSAGE, GENERIC_ERROR_MESSAGE, TEMPLATE_BRIDGE_MESSAGE
from config import BudgetPolicy
from schemas import DirectoryReply, Query, Tier
from directory_agent.correction_node import NO_CANDIDATES_TEXT, CorrectionAdvisor, TextGenerator
from directory_agent.deadline import DeadlineTracker
from directory_agent.resolver_node import RecordResolver, RecordStore
from directory_agent.response_node import TieredResponseGenerator
from directory_agent.state import (
    PHASE_ABORT,
    PHASE_CORRECTING,
    PHASE_DONE,
    PHASE_RE_RESOLVING,
    PHASE_RESOLVING,
    PHASE_RESPONDING,
    TERMINAL_PHASES,
    RequestState,
    create_initial_state,
)

logger = logging.getLogger(__name__)

PHASE_SHORT_CIRCUIT = "SHORT_CIRCUIT"
PHASE_ERROR = "ERROR"

ABORT_NO_MATCH = "no_match"
ABORT_NOT_FOUND_AFTER_CORRECTION = "not_found_after_correction"


# ── User-facing text ──────────────────────────────────────────────────────────

def correction_acknowledgment(original: str, corrected: str) -> str:
    return f'You typed "{original}", but I think you meant {corrected}!'


def _with_correction(body: str, tier: Tier, correction_pair: Tuple[str, str], advisory_text: Optional[str]) -> str:
    """
    Prefix the answer with the correction acknowledgment. Generative tiers
    reuse the advisor's own reply; TEMPLATE answers get the fixed sentence
    and a note that the smart answer was unavailable.
    """
    acknowledgment = correction_acknowledgment(*correction_pair)
    if tier is Tier.TEMPLATE:
        return f"{acknowledgment}\n\n{TEMPLATE_BRIDGE_MESSAGE}\n{body}"
    return f"{(advisory_text or '').strip() or acknowledgment}\n\n{body}"


def _no_match_message(name: str, advisory_text: Optional[str]) -> str:
    if advisory_text == NO_CANDIDATES_TEXT:
        return f'Sorry, I couldn\'t find "{name}", and the teacher roster seems to be missing too...'
    if advisory_text:
        return advisory_text
    return f'My name-correction chip isn\'t cooperating today... I really can\'t find "{name}".'


def _not_found_after_correction_message(corrected: str) -> str:
    return f"Hmm... I couldn't find {corrected} in the school directory. Could you double-check the name?"


# ── Graph ─────────────────────────────────────────────────────────────────────

def _trace(state: RequestState, tracker: DeadlineTracker, stage: str, outcome: str) -> None:
    state["stage_trace"].append({"stage": stage, "outcome": outcome, "elapsed_ms": tracker.elapsed()})


def _route_after_resolve(state: RequestState) -> str:
    return "respond" if state["routing_decision"] == "hit" else "correct"


def _route_after_correct(state: RequestState) -> str:
    return "re_resolve" if state["routing_decision"] == "suggested" else "abort"


def _route_after_re_resolve(state: RequestState) -> str:
    return "respond" if state["routing_decision"] == "hit" else "abort"


def build_graph(
    resolver: RecordResolver,
    advisor: CorrectionAdvisor,
    generator: TieredResponseGenerator,
    tracker: DeadlineTracker,
    policy: BudgetPolicy,
):
    """
    Assemble and compile the StateGraph for one request. Nodes are closures
    over the request's collaborators so nothing request-scoped lives in
    module state.

    Raises:
        Never - propagates LangGraph compilation errors to handle_query.
    """

    async def resolve_node(state: RequestState) -> RequestState:
        state["phase"] = PHASE_RESOLVING
        record = await resolver.resolve(state["original_name"])
        state["record"] = record
        state["routing_decision"] = "hit" if record else "miss"
        _trace(state, tracker, "resolve", state["routing_decision"])
        return state

    async def correct_node(state: RequestState) -> RequestState:
        state["phase"] = PHASE_CORRECTING
        candidates = await resolver.candidate_names()
        allowance = tracker.allocate(
            fixed_ms=policy.corrector_cap_ms,
            reserve_ms=policy.response_reserve_ms,
            safety_margin_ms=policy.correction_safety_margin_ms,
        )
        result = await advisor.suggest(state["original_name"], candidates, allowance)
        state["correction"] = result
        state["routing_decision"] = "suggested" if result.found else "no_match"
        if not result.found:
            state["abort_reason"] = ABORT_NO_MATCH
        _trace(state, tracker, "correct", state["routing_decision"])
        return state

    async def re_resolve_node(state: RequestState) -> RequestState:
        state["phase"] = PHASE_RE_RESOLVING
        suggested = state["correction"].suggested_name
        record = await resolver.resolve(suggested)
        state["record"] = record
        state["routing_decision"] = "hit" if record else "miss"
        if record is None:
            logger.warning("Orchestrator: corrected name '%s' is not in the directory", suggested)
            state["abort_reason"] = ABORT_NOT_FOUND_AFTER_CORRECTION
        _trace(state, tracker, "re_resolve", state["routing_decision"])
        return state

    async def respond_node(state: RequestState) -> RequestState:
        state["phase"] = PHASE_RESPONDING
        record = state["record"]
        correction = state["correction"]
        correction_pair = None
        if correction is not None and correction.found:
            correction_pair = (state["original_name"], record.canonical_name)

        outcome = await generator.generate(state["query"].raw_text, record, correction_pair)
        body = outcome.candidate.text
        if correction_pair:
            body = _with_correction(body, outcome.candidate.tier, correction_pair, correction.advisory_text)

        state["tier_attempted"] = outcome.attempted_tier.value
        state["response_tier"] = outcome.candidate.tier.value
        state["final_response"] = body
        state["phase"] = PHASE_DONE
        _trace(state, tracker, "respond", outcome.candidate.tier.value)
        return state

    async def abort_node(state: RequestState) -> RequestState:
        if state["abort_reason"] == ABORT_NOT_FOUND_AFTER_CORRECTION:
            text = _not_found_after_correction_message(state["correction"].suggested_name)
        else:
            correction = state["correction"]
            advisory = correction.advisory_text if correction else None
            text = _no_match_message(state["original_name"], advisory)
        state["final_response"] = text
        state["phase"] = PHASE_ABORT
        _trace(state, tracker, "abort", state["abort_reason"] or ABORT_NO_MATCH)
        return state

    graph = StateGraph(RequestState)

    graph.add_node("resolve", resolve_node)
    graph.add_node("correct", correct_node)
    graph.add_node("re_resolve", re_resolve_node)
    graph.add_node("respond", respond_node)
    graph.add_node("abort", abort_node)

    graph.set_entry_point("resolve")
    graph.add_conditional_edges(
        "resolve",
        _route_after_resolve,
        {"respond": "respond", "correct": "correct"},
    )
    graph.add_conditional_edges(
        "correct",
        _route_after_correct,
        {"re_resolve": "re_resolve", "abort": "abort"},
    )
    graph.add_conditional_edges(
        "re_resolve",
        _route_after_re_resolve,
        {"respond": "respond", "abort": "abort"},
    )
    graph.add_edge("respond", END)
    graph.add_edge("abort", END)

    return graph.compile()


# ── Orchestrator ──────────────────────────────────────────────────────────────

class DirectoryOrchestrator:
    """
    Long-lived orchestrator; per-request state is created inside handle_query.

    Args:
        store:   Injected directory store client (explicitly connected elsewhere).
        backend: Generative backend.
        policy:  Budget policy; defaults to BudgetPolicy.from_env().
        clock:   Optional millisecond clock for DeadlineTracker (tests).
    """

    def __init__(
        self,
        store: RecordStore,
        backend: TextGenerator,
        policy: Optional[BudgetPolicy] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.policy = policy or BudgetPolicy.from_env()
        self.clock = clock

    @traceable(name="directory_orchestrator.handle_query")
    async def handle_query(self, query: Query) -> DirectoryReply:
        """
        Answer one query with exactly one message.

        Raises:
            Never - unexpected faults become GENERIC_ERROR_MESSAGE.
        """
        if not query.has_name:
            logger.info("Orchestrator: no teacher name extracted; asking for one")
            return DirectoryReply(text=ASK_FOR_NAME_MESSAGE, phase=PHASE_SHORT_CIRCUIT)

        tracker = DeadlineTracker(self.policy.total_ms, clock=self.clock)
        try:
            resolver = RecordResolver(self.store, tracker, self.policy.store_safety_margin_ms)
            advisor = CorrectionAdvisor(self.backend)
            generator = TieredResponseGenerator(self.backend, tracker, self.policy)
            graph = build_graph(resolver, advisor, generator, tracker, self.policy)

            result = await graph.ainvoke(create_initial_state(query))
        except Exception as e:
            logger.exception(
                "Orchestrator: unexpected fault for '%s' after %dms: %s",
                query.extracted_name, tracker.elapsed(), e,
            )
            return DirectoryReply(text=GENERIC_ERROR_MESSAGE, phase=PHASE_ERROR)

        text = (result.get("final_response") or "").strip()
        if not text or result.get("phase") not in TERMINAL_PHASES:
            logger.error("Orchestrator: graph finished in phase %s without a final response", result.get("phase"))
            return DirectoryReply(text=GENERIC_ERROR_MESSAGE, phase=PHASE_ERROR)

        correction = result.get("correction")
        tier = Tier(result["response_tier"]) if result.get("response_tier") else None
        logger.info(
            "Orchestrator: '%s' finished in %s (tier=%s, attempted=%s) after %dms; stages=%s",
            query.extracted_name, result["phase"], result.get("response_tier") or "-",
            result.get("tier_attempted") or "-", tracker.elapsed(), result.get("stage_trace"),
        )
        return DirectoryReply(
            text=text,
            phase=result["phase"],
            tier=tier,
            corrected_name=correction.suggested_name if correction is not None and result["phase"] == PHASE_DONE else None,
        )
