from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.backend import get_oracle
from app.schemas.precheck import ApplyAlternativeIn, PrecheckIn, PrecheckOut
from app.schemas.timetable import SaveCheck, TimeRangeIn, TimetableEntry, TimeValidation
from app.services.conflict_oracle import ConflictOracle, OracleUnavailable, TimetableSaveRejected
from app.services.precheck import ConflictPreChecker, SaveBlocked, apply_alternative, save_timetable
from app.utils.auth import require_token
from app.utils.conflict import can_save
from app.utils.timeslots import validate_time_range, whole_hour_slots

import logging
logger = logging.getLogger("app.timetable")


router = APIRouter(prefix="/admin/class-groups", tags=["Admin - Class Group Timetable"])


@router.get("/timetable/time-slots", response_model=List[str])
def list_time_slots():
    return whole_hour_slots()


@router.post("/timetable/validate-time", response_model=TimeValidation, response_model_exclude_none=True)
def validate_time(body: TimeRangeIn):
    return validate_time_range(body.start_time, body.end_time)


@router.post("/timetable/can-save", response_model=SaveCheck, response_model_exclude_none=True)
def check_can_save(body: List[TimetableEntry]):
    return can_save(body)


@router.post("/timetable/apply-alternative", response_model=TimetableEntry)
def apply_alternative_slot(body: ApplyAlternativeIn):
    return apply_alternative(body.candidate, body.alternative)


@router.get("/{class_group_id}/timetable", response_model=List[TimetableEntry])
async def get_class_group_timetable(class_group_id: str, oracle: ConflictOracle = Depends(get_oracle)):
    try:
        return await oracle.get_timetable(class_group_id)
    except OracleUnavailable as e:
        logger.warning("Timetable lookup failed class_group=%s: %s", class_group_id, e)
        raise HTTPException(status_code=502, detail="Failed to load class group timetable")


@router.post("/{class_group_id}/timetable/precheck", response_model=PrecheckOut)
async def precheck_entry(
    class_group_id: str,
    body: PrecheckIn,
    oracle: ConflictOracle = Depends(get_oracle),
):
    checker = ConflictPreChecker(oracle, class_group_id)
    return await checker.precheck(body.candidate, body.staged_entries, body.editing_index)


@router.put("/{class_group_id}/timetable")
async def save_class_group_timetable(
    class_group_id: str,
    body: List[TimetableEntry],
    oracle: ConflictOracle = Depends(get_oracle),
    _token: str = Depends(require_token),
):
    try:
        return await save_timetable(oracle, class_group_id, body)
    except SaveBlocked as e:
        raise HTTPException(status_code=422, detail=str(e))
    except TimetableSaveRejected as e:
        return JSONResponse(
            status_code=409,
            content={"detail": e.report.model_dump(mode="json", by_alias=True)},
        )
    except OracleUnavailable as e:
        logger.warning("Timetable save failed class_group=%s: %s", class_group_id, e)
        raise HTTPException(status_code=502, detail="Failed to update timetable")
