"""
resolver_node.py
----------------
CampusGuide - Campus Directory Assistant - Record Resolver
-----------------------------------------------------------
Looks up a teacher record by approximate name through the injected
directory store, with every store call bounded by the request budget.

Matching is mechanical (case-insensitive substring in either direction, done
by the store). It does not fix transpositions or phonetic slips; that is the
Correction Advisor's job.

Outcomes collapse to a miss: a real miss, a disconnected store, a
store error and a store timeout all resolve to None. The orchestrator treats
every one of them as "not found" and moves on to correction.

Key classes:
    RecordStore: Protocol the store client must satisfy.
    RecordResolver: Budget-aware resolve() / candidate_names().

Project: CampusGuide - Campus Directory Assistant
"""

import asyncio
import logging
from typing import List, Optional, Protocol

from schemas import Record
from directory_agent.deadline import DeadlineTracker

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    async def find_by_approximate_name(self, name: str) -> Optional[Record]: ...

    async def list_all_names(self) -> List[str]: ...


class RecordResolver:
    """
    Args:
        store: Directory store client (fails closed on its own).
        tracker: The request's DeadlineTracker.
        safety_margin_ms: Kept back from each store call's allowance.
    """

    def __init__(self, store: RecordStore, tracker: DeadlineTracker, safety_margin_ms: int = 0) -> None:
        self.store = store
        self.tracker = tracker
        self.safety_margin_ms = safety_margin_ms

    async def resolve(self, name: str) -> Optional[Record]:
        """
        Return the first matching record for ``name`` or None.

        Raises:
            Never - store errors and timeouts are logged and become a miss.
        """
        needle = (name or "").strip()
        if not needle:
            return None

        allowance = self.tracker.allocate(safety_margin_ms=self.safety_margin_ms)
        if allowance <= 0:
            logger.warning("Resolver: no budget left to look up '%s'; treating as miss", needle)
            return None

        try:
            record = await asyncio.wait_for(
                self.store.find_by_approximate_name(needle),
                timeout=allowance / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning("Resolver: lookup for '%s' timed out after %dms", needle, allowance)
            return None
        except Exception as e:
            logger.error("Resolver: lookup for '%s' failed: %s", needle, e)
            return None

        if record is None:
            logger.info("Resolver: no record matches '%s'", needle)
        else:
            logger.info("Resolver: '%s' resolved to '%s'", needle, record.canonical_name)
        return record

    async def candidate_names(self) -> List[str]:
        """
        Every known name, for the correction prompt. [] on timeout or error.

        Raises:
            Never.
        """
        allowance = self.tracker.allocate(safety_margin_ms=self.safety_margin_ms)
        if allowance <= 0:
            return []
        try:
            names = await asyncio.wait_for(self.store.list_all_names(), timeout=allowance / 1000)
        except asyncio.TimeoutError:
            logger.warning("Resolver: listing names timed out after %dms", allowance)
            return []
        except Exception as e:
            logger.error("Resolver: listing names failed: %s", e)
            return []
        return [n for n in (names or []) if isinstance(n, str) and n.strip()]
