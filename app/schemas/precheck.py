from enum import Enum
from typing import List, Optional

from pydantic import Field

from app.schemas.timetable import (
    AlternativeSlot,
    CamelModel,
    ConflictCheckResult,
    ConflictType,
    TimetableEntry,
)


class PrecheckState(str, Enum):
    EMPTY = "EMPTY"
    VALIDATING = "VALIDATING"
    CHECKING_REMOTE = "CHECKING_REMOTE"
    CLEAR = "CLEAR"
    BLOCKED = "BLOCKED"
    UNDETERMINED = "UNDETERMINED"


class PrecheckIn(CamelModel):
    candidate: TimetableEntry
    staged_entries: List[TimetableEntry] = Field(default_factory=list)
    # index of the staged entry being edited in place, excluded from the overlap scan
    editing_index: Optional[int] = None


class PrecheckOut(CamelModel):
    state: PrecheckState
    result: Optional[ConflictCheckResult] = None
    can_add: bool = False


class ApplyAlternativeIn(CamelModel):
    candidate: TimetableEntry
    alternative: AlternativeSlot


class SaveConflictLine(CamelModel):
    category: Optional[ConflictType] = None
    text: str


class SaveConflictReport(CamelModel):
    title: str
    lines: List[SaveConflictLine] = Field(default_factory=list)
    footer: List[str] = Field(default_factory=list)
    raw_message: str = ""
