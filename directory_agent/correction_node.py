"""
correction_node.py
------------------
CampusGuide - Campus Directory Assistant - Correction Advisor
--------------------------------------------------------------
When a lookup misses, asks the generative backend which known teacher the
student most likely meant, within a sub-budget carved out by the
orchestrator.

The prompt tells the backend to wrap its guess in **bold** markup if and
only if it found a plausible match. extract_suggested_name() reads that
marker back out. The marker is a convention of the prompt, not a structural
guarantee of the backend: if the prompt wording changes, the extractor
tests are the first thing that should break.

Key functions:
    extract_suggested_name: Pull the first **...** span out of free text.
    build_correction_prompt: Prompt embedding the typed name and full roster.
    CorrectionAdvisor.suggest: Bounded backend call -> CorrectionResult.

Project: CampusGuide - Campus Directory Assistant
"""

import logging
import re
from typing import List, Optional, Protocol

from campus_guidelines import PERSONA, STYLE_RULES
from schemas import CorrectionResult

logger = logging.getLogger(__name__)

NO_CANDIDATES_TEXT = "no candidates available"

# Non-greedy so "**A** or **B**" yields "A".
_EMPHASIS_RE = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, timeout_ms: int) -> Optional[str]: ...


# ── Marker extraction ─────────────────────────────────────────────────────────

def extract_suggested_name(text: Optional[str]) -> Optional[str]:
    """
    Return the first **bold** span in ``text``, stripped, or None when there
    is no marker (or the marker is empty).

    Raises:
        Never.
    """
    if not text:
        return None
    match = _EMPHASIS_RE.search(text)
    if not match:
        return None
    name = match.group(1).strip().strip("\"'「」“”")
    return name or None


def _match_candidate(name: str, candidates: List[str]) -> str:
    """Prefer the roster's exact spelling when the suggestion matches ignoring case."""
    lowered = name.casefold()
    for candidate in candidates:
        if candidate.casefold() == lowered:
            return candidate
    return name


# ── Prompt ────────────────────────────────────────────────────────────────────

def build_correction_prompt(original_name: str, candidate_names: List[str]) -> str:
    roster = ", ".join(candidate_names)
    return f"""
Task: {PERSONA} Right now your only job is to help a student who may have mistyped a teacher's name.
Rules:
1. {STYLE_RULES}
2. Compare the name the student typed with the full teacher roster and judge which roster name is most similar.
3. If you find a plausible closest name: ask the student back with a light joke, quoting the name they typed,
   and put that ONE roster name in bold markup exactly like **Full Name**. Use bold markup for nothing else.
4. If no roster name is plausibly similar: say politely that you could not find the teacher and suggest checking
   the spelling. Do NOT use any bold markup in that case.
---
Name the student typed: "{original_name}"
---
Full teacher roster: "{roster}"
---
Your answer:"""


# ── Advisor ───────────────────────────────────────────────────────────────────

class CorrectionAdvisor:
    """
    Args:
        backend: Generative backend (``generate(prompt, timeout_ms)``).
    """

    def __init__(self, backend: TextGenerator) -> None:
        self.backend = backend

    async def suggest(
        self,
        original_name: str,
        candidate_names: List[str],
        allowance_ms: int,
    ) -> CorrectionResult:
        """
        Ask the backend for the closest roster name.

        Returns:
            CorrectionResult:
              - (None, "no candidates available") for an empty roster, no call made;
              - (None, None) when allowance_ms <= 0 or the backend returns None;
              - (None, text) when the backend answered without a marker;
              - (name, text) when a marker was found.

        Raises:
            Never - correction failure only means "not found".
        """
        if not candidate_names:
            logger.info("CorrectionAdvisor: empty roster, skipping correction for '%s'", original_name)
            return CorrectionResult(suggested_name=None, advisory_text=NO_CANDIDATES_TEXT)

        if allowance_ms <= 0:
            logger.warning("CorrectionAdvisor: no budget for correction of '%s'", original_name)
            return CorrectionResult()

        prompt = build_correction_prompt(original_name, candidate_names)
        logger.info(
            "CorrectionAdvisor: asking backend to correct '%s' against %d names (allowance %dms)",
            original_name, len(candidate_names), allowance_ms,
        )
        try:
            text = await self.backend.generate(prompt, allowance_ms)
        except Exception as e:
            logger.exception("CorrectionAdvisor: backend raised for '%s': %s", original_name, e)
            return CorrectionResult()

        if not text:
            logger.warning("CorrectionAdvisor: no usable answer for '%s'", original_name)
            return CorrectionResult()

        suggested = extract_suggested_name(text)
        if suggested:
            suggested = _match_candidate(suggested, candidate_names)
            logger.info("CorrectionAdvisor: '%s' -> suggested '%s'", original_name, suggested)
        else:
            logger.info("CorrectionAdvisor: backend found no match for '%s'", original_name)
        return CorrectionResult(suggested_name=suggested, advisory_text=text.strip())
