"""
state.py
--------
CampusGuide - Campus Directory Assistant - LangGraph RequestState schema
-------------------------------------------------------------------------
Defines the RequestState TypedDict that flows through every node of the
directory orchestrator graph, plus create_initial_state() so every request
starts from the same defaults.

All fields are request-scoped; nothing here survives the request.

Key fields:
    phase: Current pipeline phase (see PHASE_* constants). Written by each
        node on entry so a caught fault can report where it happened.
    routing_decision: Set by the resolve/correct nodes to drive the
        conditional edges: "hit" | "miss" | "suggested" | "no_match".
    record: Snapshot of the resolved directory record, or None.
    correction: CorrectionResult from the one correction pass, or None when
        the first lookup hit.
    original_name: Name as the student typed it; kept for acknowledgments.
    tier_attempted: First tier selected by measured budget.
    response_tier: Tier whose text was actually emitted.
    abort_reason: Why the request ended in ABORT: "no_match" | "not_found_after_correction".
    final_response: The single outbound message. Set only by the respond
        and abort nodes.
    stage_trace: Ordered list of {"stage", "outcome", "elapsed_ms"} dicts for logs.

Project: CampusGuide - Campus Directory Assistant
"""

from typing import List, Optional
from typing_extensions import TypedDict

from schemas import CorrectionResult, Query, Record

# ── Phase constants ───────────────────────────────────────────────────────────

PHASE_START = "START"
PHASE_RESOLVING = "RESOLVING"
PHASE_CORRECTING = "CORRECTING"
PHASE_RE_RESOLVING = "RE_RESOLVING"
PHASE_RESPONDING = "RESPONDING"
PHASE_DONE = "DONE"
PHASE_ABORT = "ABORT"

TERMINAL_PHASES = {PHASE_DONE, PHASE_ABORT}


class RequestState(TypedDict):
    query: Query
    phase: str
    routing_decision: str
    original_name: str
    record: Optional[Record]
    correction: Optional[CorrectionResult]
    tier_attempted: str
    response_tier: str
    final_response: str
    abort_reason: str
    error: Optional[str]
    stage_trace: List[dict]


def create_initial_state(query: Query) -> RequestState:
    """
    Create a fresh RequestState for one inbound query.

    Raises:
        Never.
    """
    return {
        "query": query,
        "phase": PHASE_START,
        "routing_decision": "",
        "original_name": query.extracted_name.strip(),
        "record": None,
        "correction": None,
        "tier_attempted": "",
        "response_tier": "",
        "final_response": "",
        "abort_reason": "",
        "error": None,
        "stage_trace": [],
    }
