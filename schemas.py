"""
schemas.py
----------
CampusGuide - Campus Directory Assistant - Pydantic data contracts
-------------------------------------------------------------------
Pydantic v2 models shared by the directory store, the agent nodes and the
webhook layer. Every model here is request-scoped and immutable: the
orchestrator only ever holds read-only snapshots.

Record documents in the directory keep the field names the school office
entered them with (名稱, 辦公室, 分機, 在校日子, 任教課程 and, per course,
課程名稱 / 課程編號 / 授課教室). Both those keys and the English field names
validate into the same model.

Public API
----------
    Query              Inbound question plus the extracted teacher name.
    Course             One taught course.
    Record             A directory entry for one teacher.
    CorrectionResult   Outcome of the name-correction pass.
    Tier               Response-construction strategy (FULL | QUICK | TEMPLATE).
    ResponseCandidate  Answer text produced by one tier, and that tier.
    DirectoryReply     The single outbound message for a query.

Project: CampusGuide - Campus Directory Assistant
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_FROZEN = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def _clean(value: Any) -> Any:
    """Coerce numbers to str and strip whitespace; leave None alone."""
    if value is None:
        return None
    return str(value).strip()


# ---------------------------------------------------------------------------
# Inbound query
# ---------------------------------------------------------------------------

class Query(BaseModel):
    """One inbound question. extracted_name may be empty when NLU found no name."""

    model_config = _FROZEN

    raw_text:       str = ""
    extracted_name: str = ""

    @field_validator("raw_text", "extracted_name", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def has_name(self) -> bool:
        return bool(self.extracted_name.strip())


# ---------------------------------------------------------------------------
# Directory record
# ---------------------------------------------------------------------------

class Course(BaseModel):
    model_config = _FROZEN

    title: str           = Field(validation_alias=AliasChoices("title", "課程名稱"))
    code:  Optional[str] = Field(default=None, validation_alias=AliasChoices("code", "課程編號"))
    room:  Optional[str] = Field(default=None, validation_alias=AliasChoices("room", "授課教室"))

    @field_validator("title", "code", "room", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _clean(v)

    def describe(self) -> str:
        """Title plus code, or plus room when there is no code."""
        if self.code:
            return f"{self.title} ({self.code})"
        if self.room:
            return f"{self.title} (in {self.room})"
        return self.title


class Record(BaseModel):
    """
    Read-only snapshot of one teacher's directory entry.

    Fields
    ------
    canonical_name:  Name exactly as stored; used for acknowledgments.
    office_location: Office room or building.
    extension:       Phone extension, kept as a string ("3325", "#12").
    presence_days:   Free-text days the teacher is on campus, if recorded.
    courses:         Taught courses in store order.
    """

    model_config = _FROZEN

    canonical_name:  str           = Field(min_length=1, validation_alias=AliasChoices("canonical_name", "名稱"))
    office_location: str           = Field(default="", validation_alias=AliasChoices("office_location", "辦公室"))
    extension:       str           = Field(default="", validation_alias=AliasChoices("extension", "分機"))
    presence_days:   Optional[str] = Field(default=None, validation_alias=AliasChoices("presence_days", "在校日子"))
    courses:         List[Course]  = Field(default_factory=list, validation_alias=AliasChoices("courses", "任教課程"))

    @field_validator("canonical_name", "office_location", "extension", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("presence_days", mode="before")
    @classmethod
    def coerce_days(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            v = ", ".join(str(d) for d in v)
        return str(v).strip() or None

    @field_validator("courses", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return v or []

    @property
    def course_titles(self) -> List[str]:
        return [c.title for c in self.courses]

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Record":
        """Validate a raw store document (Chinese or English keys)."""
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """Dump with the English field names, suitable for JSON storage."""
        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Pipeline outcomes
# ---------------------------------------------------------------------------

class CorrectionResult(BaseModel):
    """
    Outcome of one correction pass. suggested_name=None means "no plausible
    match"; advisory_text carries the backend's wording (or a short reason)
    when there is one.
    """

    model_config = _FROZEN

    suggested_name: Optional[str] = None
    advisory_text:  Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.suggested_name)


class Tier(str, Enum):
    FULL = "FULL"
    QUICK = "QUICK"
    TEMPLATE = "TEMPLATE"


class ResponseCandidate(BaseModel):
    """The answer produced by one tier. text=None means the tier failed."""

    model_config = _FROZEN

    text: Optional[str] = None
    tier: Tier


class DirectoryReply(BaseModel):
    """
    The one outbound message for a query.

    phase is the terminal phase (DONE or ABORT, or SHORT_CIRCUIT / ERROR for
    replies produced outside the graph); tier is set only for DONE.
    """

    model_config = _FROZEN

    text:           str
    phase:          str
    tier:           Optional[Tier] = None
    corrected_name: Optional[str]  = None
