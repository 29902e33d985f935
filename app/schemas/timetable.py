from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# The admin console and the backend both speak camelCase JSON.
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"


class EntryType(str, Enum):
    LECTURE = "Lecture"
    LAB = "Lab"
    TUTORIAL = "Tutorial"
    SEMINAR = "Seminar"
    WORKSHOP = "Workshop"
    STUDY_GROUP = "Study Group"


class ConflictType(str, Enum):
    CLASSROOM = "CLASSROOM"
    PROFESSOR = "PROFESSOR"
    STUDENT = "STUDENT"
    TIME_FORMAT = "TIME_FORMAT"
    LOCAL = "LOCAL"


# affectedUsers entries carrying this role are rooms, not people; the room name is in lastName.
CLASSROOM_ROLE = "CLASSROOM"

DEFAULT_ENTRY_COLOR = "#6366f1"


class TimetableEntry(CamelModel):
    """One recurring class meeting of a class group.

    Times are kept as the raw "HH:MM" strings the console sends; an empty
    string means the field has not been filled in yet. Range rules are
    checked by ``validate_time_range``, not here, so that a staged buffer
    holding a broken entry can still be loaded and reported on.
    """
    day: Optional[Weekday] = Weekday.MONDAY
    name: str = ""
    instructor: Optional[str] = None
    location: str = ""
    start_time: str = ""
    end_time: str = ""
    color: str = DEFAULT_ENTRY_COLOR
    type: EntryType = EntryType.LECTURE


class AffectedUser(CamelModel):
    id: Optional[Union[int, str]] = None
    # the backend may send null for any of these
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_classroom(self) -> bool:
        return self.role == CLASSROOM_ROLE


class AlternativeSlot(CamelModel):
    day: Weekday
    start_time: str
    end_time: str
    label: str = ""


class ConflictCheckResult(CamelModel):
    has_conflict: bool
    message: str = ""
    conflict_type: List[ConflictType] = Field(default_factory=list)
    affected_users: List[AffectedUser] = Field(default_factory=list)
    alternatives: List[AlternativeSlot] = Field(default_factory=list)

    @field_validator("alternatives", mode="before")
    @classmethod
    def _drop_unreadable_alternatives(cls, value):
        # one broken suggestion must not void the whole verdict
        if not isinstance(value, list):
            return []
        kept = []
        for item in value:
            try:
                kept.append(AlternativeSlot.model_validate(item))
            except ValidationError:
                continue
        return kept

    @model_validator(mode="after")
    def _clear_when_no_conflict(self):
        if not self.has_conflict:
            self.conflict_type = []
            self.affected_users = []
            self.alternatives = []
        else:
            # tags form a set; keep first-seen order
            self.conflict_type = list(dict.fromkeys(self.conflict_type))
        return self

    @computed_field
    @property
    def conflict_categories(self) -> List[ConflictType]:
        """Explicit tags plus categories implied by affected users' roles."""
        found = list(self.conflict_type)
        for user in self.affected_users:
            try:
                tag = ConflictType(user.role or "")
            except ValueError:
                continue
            if tag not in found:
                found.append(tag)
        return found

    @computed_field
    @property
    def conflicting_rooms(self) -> List[str]:
        return [u.last_name or "" for u in self.affected_users if u.is_classroom]

    @computed_field
    @property
    def affected_people(self) -> List[AffectedUser]:
        return [u for u in self.affected_users if not u.is_classroom]


class TimeValidation(CamelModel):
    valid: bool
    message: Optional[str] = None


class SaveCheck(CamelModel):
    ok: bool
    error: Optional[str] = None


class TimeRangeIn(CamelModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ConflictCheckIn(CamelModel):
    """Body of the backend's check-conflicts call."""
    day: Weekday
    start_time: str
    end_time: str
    location: str = ""
