# app/utils/conflict.py
from typing import Iterable, List, Optional, Sequence

from app.schemas.precheck import SaveConflictLine, SaveConflictReport
from app.schemas.timetable import AlternativeSlot, ConflictType, SaveCheck, TimetableEntry
from app.utils.timeslots import is_whole_hour, to_minutes, validate_time_range


CONFLICT_MARKERS = (
    ("CLASSROOM CONFLICT", ConflictType.CLASSROOM),
    ("PROFESSOR CONFLICT", ConflictType.PROFESSOR),
    ("STUDENT CONFLICT", ConflictType.STUDENT),
)
TIME_RULE_MARKERS = (
    "Start time must be on the hour",
    "End time must be on the hour",
    "Class duration must be exactly",
)
LEGACY_CONFLICT_PREFIX = "Timetable conflicts detected: "

CONFLICTS_TITLE = "Cannot save timetable due to scheduling conflicts:"
CONFLICTS_FOOTER = "Please adjust the timetable to resolve these conflicts."
TIME_RULES_TITLE = "Time validation error:"
TIME_RULES_FOOTER = [
    "Please adjust the timetable to follow the time format rules:",
    "Times must be on whole hours (e.g., 9:00, 10:00)",
    "Class duration must be exactly 1 or 2 hours",
]


def overlaps(a: TimetableEntry, b: TimetableEntry) -> bool:
    """
    同一天且 [start, end) 區間有交集
    """
    if a.day != b.day:
        return False
    return (
        to_minutes(a.start_time) < to_minutes(b.end_time)
        and to_minutes(a.end_time) > to_minutes(b.start_time)
    )


def has_local_overlap(
    candidate: TimetableEntry,
    staged_entries: Sequence[TimetableEntry],
    skip_index: Optional[int] = None,
) -> bool:
    """
    candidate: entry being composed
    staged_entries: entries already in the edit buffer (not saved yet)
    skip_index: position of the entry edited in place, ignored
    """
    for i, existing in enumerate(staged_entries):
        if i == skip_index:
            continue
        if overlaps(existing, candidate):
            return True
    return False


def filter_valid_alternatives(alternatives: Iterable[AlternativeSlot]) -> List[AlternativeSlot]:
    # Only whole hours and whole-hour durations; the 8:00-18:00 bounds are left to the backend.
    out = []
    for alt in alternatives:
        if not (is_whole_hour(alt.start_time) and is_whole_hour(alt.end_time)):
            continue
        duration = to_minutes(alt.end_time) - to_minutes(alt.start_time)
        if duration <= 0 or duration % 60 != 0:
            continue
        out.append(alt)
    return out


def can_save(staged_entries: Sequence[TimetableEntry]) -> SaveCheck:
    for entry in staged_entries:
        check = validate_time_range(entry.start_time, entry.end_time)
        if not check.valid:
            return SaveCheck(ok=False, error=check.message)
    return SaveCheck(ok=True)


def _non_blank_lines(text: str) -> List[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def parse_save_error(message: str) -> SaveConflictReport:
    """
    Turn the backend's save rejection text into display lines.

    Every non-blank conflict line is kept; only the marker prefix is removed.
    """
    message = message or ""

    if any(marker in message for marker, _ in CONFLICT_MARKERS):
        lines = []
        for line in _non_blank_lines(message):
            category = None
            text = line
            for marker, tag in CONFLICT_MARKERS:
                if marker in line:
                    category = tag
                text = text.replace(marker + ": ", "")
            lines.append(SaveConflictLine(category=category, text=text))
        return SaveConflictReport(
            title=CONFLICTS_TITLE, lines=lines, footer=[CONFLICTS_FOOTER], raw_message=message
        )

    if any(marker in message for marker in TIME_RULE_MARKERS):
        return SaveConflictReport(
            title=TIME_RULES_TITLE,
            lines=[SaveConflictLine(category=ConflictType.TIME_FORMAT, text=message)],
            footer=list(TIME_RULES_FOOTER),
            raw_message=message,
        )

    if message.startswith(LEGACY_CONFLICT_PREFIX):
        details = message[len(LEGACY_CONFLICT_PREFIX):]
        lines = [
            SaveConflictLine(text=line[2:] if line.startswith("- ") else line)
            for line in _non_blank_lines(details)
        ]
        return SaveConflictReport(
            title=CONFLICTS_TITLE, lines=lines, footer=[CONFLICTS_FOOTER], raw_message=message
        )

    return SaveConflictReport(
        title=message,
        lines=[SaveConflictLine(text=line) for line in _non_blank_lines(message)],
        raw_message=message,
    )
