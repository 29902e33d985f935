from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from app.config import settings
from app.schemas.precheck import SaveConflictReport
from app.schemas.timetable import ConflictCheckIn, ConflictCheckResult, TimetableEntry
from app.utils.conflict import parse_save_error

import logging
logger = logging.getLogger("app.oracle")


class OracleUnavailable(Exception):
    """The backend could not be reached or answered with something unusable."""


class TimetableSaveRejected(Exception):
    def __init__(self, message: str, report: SaveConflictReport, status_code: int):
        super().__init__(message)
        self.message = message
        self.report = report
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text


class ConflictOracle:
    """HTTP port to the class-group endpoints of the campus backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.backend_api_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.BACKEND_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def check_conflicts(self, class_group_id: str, candidate: TimetableEntry) -> ConflictCheckResult:
        body = ConflictCheckIn(
            day=candidate.day,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            location=candidate.location,
        )
        try:
            response = await self._client.post(
                f"/class-groups/{class_group_id}/check-conflicts",
                json=body.model_dump(mode="json", by_alias=True),
            )
            response.raise_for_status()
            return ConflictCheckResult.model_validate(response.json())
        except httpx.HTTPError as e:
            raise OracleUnavailable(f"conflict check failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise OracleUnavailable(f"malformed conflict check response: {e}") from e

    async def get_timetable(self, class_group_id: str) -> List[TimetableEntry]:
        try:
            response = await self._client.get(f"/class-groups/{class_group_id}")
            response.raise_for_status()
            data = response.json()
            entries = data.get("timetableEntries") or []
            return [TimetableEntry.model_validate(e) for e in entries]
        except httpx.HTTPError as e:
            raise OracleUnavailable(f"class group lookup failed: {e}") from e
        except (ValueError, AttributeError, ValidationError) as e:
            raise OracleUnavailable(f"malformed class group response: {e}") from e

    async def save_timetable(self, class_group_id: str, entries: Sequence[TimetableEntry]) -> Dict[str, Any]:
        payload = [e.model_dump(mode="json", by_alias=True) for e in entries]
        try:
            response = await self._client.put(f"/class-groups/{class_group_id}/timetable", json=payload)
        except httpx.HTTPError as e:
            raise OracleUnavailable(f"timetable save failed: {e}") from e

        if response.is_error:
            message = _error_message(response) or "Failed to update timetable"
            logger.warning(
                "Timetable save rejected class_group=%s status=%s message=%r",
                class_group_id, response.status_code, message,
            )
            raise TimetableSaveRejected(message, parse_save_error(message), response.status_code)

        try:
            return response.json()
        except ValueError:
            return {}
