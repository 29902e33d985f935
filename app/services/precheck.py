import asyncio
from typing import Any, Dict, List, Optional, Sequence, Set

from app.config import settings
from app.schemas.precheck import PrecheckOut, PrecheckState
from app.schemas.timetable import (
    AlternativeSlot,
    ConflictCheckResult,
    ConflictType,
    SaveCheck,
    TimetableEntry,
)
from app.services.conflict_oracle import ConflictOracle, OracleUnavailable
from app.utils.conflict import can_save, filter_valid_alternatives, has_local_overlap
from app.utils.timeslots import validate_time_range

import logging
logger = logging.getLogger("app.precheck")


MSG_LOCAL_CONFLICT = "This time slot conflicts with another entry in the current timetable."
MSG_MISSING_FIELDS = "Please fill in all required fields for the timetable entry, including a location."
MSG_RESOLVE_CONFLICT = "Please resolve the time conflict before adding this entry"
MSG_UNDETERMINED = "Could not verify this time slot for conflicts. Please try again."
MSG_CHECKING = "Still checking this time slot for conflicts."


class SaveBlocked(Exception):
    """A staged entry failed validation; nothing was sent to the backend."""


def has_enough_info(candidate: TimetableEntry) -> bool:
    return bool(
        candidate.day
        and candidate.start_time
        and candidate.end_time
        and candidate.start_time != candidate.end_time
    )


def local_conflict(
    candidate: TimetableEntry,
    staged_entries: Sequence[TimetableEntry],
    editing_index: Optional[int] = None,
) -> Optional[ConflictCheckResult]:
    """Synchronous part of the check: time rules, then the staged buffer."""
    check = validate_time_range(candidate.start_time, candidate.end_time)
    if not check.valid:
        return ConflictCheckResult(
            has_conflict=True, message=check.message, conflict_type=[ConflictType.TIME_FORMAT]
        )
    if has_local_overlap(candidate, staged_entries, skip_index=editing_index):
        return ConflictCheckResult(
            has_conflict=True, message=MSG_LOCAL_CONFLICT, conflict_type=[ConflictType.LOCAL]
        )
    return None


def state_for(result: Optional[ConflictCheckResult]) -> PrecheckState:
    """Verdict of a check that had enough information to run."""
    if result is None:
        return PrecheckState.UNDETERMINED
    if result.has_conflict:
        return PrecheckState.BLOCKED
    return PrecheckState.CLEAR


def apply_alternative(candidate: TimetableEntry, alternative: AlternativeSlot) -> TimetableEntry:
    return candidate.model_copy(update={
        "day": alternative.day,
        "start_time": alternative.start_time,
        "end_time": alternative.end_time,
    })


class ConflictPreChecker:
    """Runs the full check for one candidate entry of one class group."""

    def __init__(self, oracle: ConflictOracle, class_group_id: str):
        self.oracle = oracle
        self.class_group_id = class_group_id

    async def check_for_conflicts(
        self,
        candidate: TimetableEntry,
        staged_entries: Sequence[TimetableEntry] = (),
        editing_index: Optional[int] = None,
    ) -> Optional[ConflictCheckResult]:
        """
        None means "no verdict": either not enough fields yet, or the
        backend could not be asked. It is never a pass.
        """
        if not has_enough_info(candidate):
            return None

        found = local_conflict(candidate, staged_entries, editing_index)
        if found is not None:
            return found

        try:
            result = await self.oracle.check_conflicts(self.class_group_id, candidate)
        except OracleUnavailable as e:
            logger.warning(
                "Conflict check undetermined class_group=%s %s %s-%s: %s",
                self.class_group_id, candidate.day.value, candidate.start_time, candidate.end_time, e,
            )
            return None

        if result.has_conflict:
            logger.info(
                "Conflict detected class_group=%s types=%s message=%r",
                self.class_group_id, [t.value for t in result.conflict_type], result.message,
            )
            result = result.model_copy(update={"alternatives": filter_valid_alternatives(result.alternatives)})
        return result

    async def precheck(
        self,
        candidate: TimetableEntry,
        staged_entries: Sequence[TimetableEntry] = (),
        editing_index: Optional[int] = None,
    ) -> PrecheckOut:
        if not has_enough_info(candidate):
            return PrecheckOut(state=PrecheckState.EMPTY)
        result = await self.check_for_conflicts(candidate, staged_entries, editing_index)
        state = state_for(result)
        return PrecheckOut(state=state, result=result, can_add=state == PrecheckState.CLEAR)


async def save_timetable(
    oracle: ConflictOracle,
    class_group_id: str,
    staged_entries: Sequence[TimetableEntry],
) -> Dict[str, Any]:
    gate = can_save(staged_entries)
    if not gate.ok:
        raise SaveBlocked(gate.error)

    saved = await oracle.save_timetable(class_group_id, staged_entries)
    # keep the submitted entries when the backend omits them from its reply
    if isinstance(saved, dict) and not saved.get("timetableEntries"):
        saved["timetableEntries"] = [e.model_dump(mode="json", by_alias=True) for e in staged_entries]
    logger.info("Timetable saved class_group=%s entries=%d", class_group_id, len(staged_entries))
    return saved


class EditSession:
    """Edit buffer of one class group's timetable plus the candidate being composed.

    Every candidate change is checked synchronously at once. The remote
    check is debounced: only the last change inside the window reaches the
    backend, and a reply is applied only if its request token is still the
    latest one issued, whatever order the replies come back in.
    """

    def __init__(
        self,
        checker: ConflictPreChecker,
        staged_entries: Optional[Sequence[TimetableEntry]] = None,
        debounce_ms: Optional[int] = None,
    ):
        self.checker = checker
        self.staged_entries: List[TimetableEntry] = list(staged_entries or [])
        self.debounce = (debounce_ms if debounce_ms is not None else settings.CONFLICT_CHECK_DEBOUNCE_MS) / 1000
        self.candidate = TimetableEntry()
        self.editing_index: Optional[int] = None
        self.state = PrecheckState.EMPTY
        self.result: Optional[ConflictCheckResult] = None

        self._token = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._settled: Optional[asyncio.Future] = None

    # ---- verdict ----

    @property
    def can_add(self) -> bool:
        return self.state == PrecheckState.CLEAR

    @property
    def alternatives(self) -> List[AlternativeSlot]:
        if self.result is None:
            return []
        return self.result.alternatives

    def snapshot(self) -> PrecheckOut:
        return PrecheckOut(state=self.state, result=self.result, can_add=self.can_add)

    def _settle(self, state: PrecheckState, result: Optional[ConflictCheckResult]):
        self.state = state
        self.result = result
        if self._settled is not None and not self._settled.done():
            self._settled.set_result(self.snapshot())

    async def wait_for_verdict(self) -> PrecheckOut:
        """Resolves once the latest change has a verdict (including "no verdict")."""
        if self._settled is None or self.state != PrecheckState.CHECKING_REMOTE:
            return self.snapshot()
        return await asyncio.shield(self._settled)

    # ---- candidate changes ----

    def on_change(self, **fields) -> PrecheckState:
        if fields:
            self.candidate = TimetableEntry.model_validate({**self.candidate.model_dump(), **fields})
        return self._trigger()

    def retry(self) -> PrecheckState:
        return self._trigger()

    def select_alternative(self, alternative: AlternativeSlot) -> PrecheckState:
        self.candidate = apply_alternative(self.candidate, alternative)
        self.result = None
        return self._trigger()

    def _trigger(self) -> PrecheckState:
        self._token += 1
        self._cancel_timer()

        loop = asyncio.get_running_loop()
        if self._settled is None or self._settled.done():
            self._settled = loop.create_future()

        if not has_enough_info(self.candidate):
            self._settle(PrecheckState.EMPTY, None)
            return self.state

        self.state = PrecheckState.VALIDATING
        found = local_conflict(self.candidate, self.staged_entries, self.editing_index)
        if found is not None:
            self._settle(PrecheckState.BLOCKED, found)
            return self.state

        self.state = PrecheckState.CHECKING_REMOTE
        self.result = None
        self._timer = loop.call_later(
            self.debounce,
            self._fire,
            self._token,
            self.candidate,
            list(self.staged_entries),
            self.editing_index,
        )
        return self.state

    def _fire(self, token, candidate, staged, editing_index):
        self._timer = None
        if token != self._token:
            return
        task = asyncio.ensure_future(self._run_remote(token, candidate, staged, editing_index))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run_remote(self, token, candidate, staged, editing_index):
        try:
            result = await self.checker.check_for_conflicts(candidate, staged, editing_index)
        except Exception:
            logger.exception(
                "Conflict check crashed class_group=%s token=%d", self.checker.class_group_id, token,
            )
            result = None
        if token != self._token:
            logger.debug("Discarding stale conflict check token=%d latest=%d", token, self._token)
            return
        self._settle(state_for(result), result)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self):
        self._cancel_timer()
        for task in list(self._in_flight):
            task.cancel()
        self._in_flight.clear()
        if self._settled is not None and not self._settled.done():
            self._settled.cancel()

    # ---- staged buffer ----

    def begin_edit(self, index: int) -> PrecheckState:
        self.editing_index = index
        self.candidate = self.staged_entries[index].model_copy()
        return self._trigger()

    def add_entry(self) -> SaveCheck:
        c = self.candidate
        if not c.name or not c.start_time or not c.end_time or not c.location:
            return SaveCheck(ok=False, error=MSG_MISSING_FIELDS)

        check = validate_time_range(c.start_time, c.end_time)
        if not check.valid:
            return SaveCheck(ok=False, error=check.message)

        if self.state == PrecheckState.BLOCKED:
            return SaveCheck(ok=False, error=MSG_RESOLVE_CONFLICT)
        if self.state == PrecheckState.UNDETERMINED:
            return SaveCheck(ok=False, error=MSG_UNDETERMINED)
        if self.state != PrecheckState.CLEAR:
            return SaveCheck(ok=False, error=MSG_CHECKING)

        if self.editing_index is not None:
            self.staged_entries[self.editing_index] = c
        else:
            self.staged_entries.append(c)
        self.reset_candidate()
        return SaveCheck(ok=True)

    def remove_entry(self, index: int):
        del self.staged_entries[index]
        if self.editing_index is not None:
            if index == self.editing_index:
                self.editing_index = None
            elif index < self.editing_index:
                self.editing_index -= 1

    def reset_candidate(self):
        self._token += 1
        self._cancel_timer()
        self.candidate = TimetableEntry()
        self.editing_index = None
        self._settle(PrecheckState.EMPTY, None)

    def can_save(self) -> SaveCheck:
        return can_save(self.staged_entries)

    async def save(self) -> Dict[str, Any]:
        return await save_timetable(self.checker.oracle, self.checker.class_group_id, self.staged_entries)
