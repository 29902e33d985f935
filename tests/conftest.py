import json

import httpx
import pytest

from app.schemas.timetable import TimetableEntry, Weekday
from app.services.conflict_oracle import ConflictOracle


def make_entry(day="Monday", start="09:00", end="10:00", location="Room101", **kw) -> TimetableEntry:
    return TimetableEntry(
        day=Weekday(day), start_time=start, end_time=end, location=location,
        name=kw.pop("name", "Algorithms"), **kw,
    )


class FakeBackend:
    """Records requests and answers them from a handler function."""

    def __init__(self, handler=None):
        self.requests = []
        self.handler = handler or (lambda request: httpx.Response(200, json={"hasConflict": False}))

    async def __call__(self, request: httpx.Request):
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body, request.headers.get("authorization")))
        response = self.handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    @property
    def check_calls(self):
        return [body for method, path, body, _ in self.requests if path.endswith("/check-conflicts")]

    def oracle(self, token=None) -> ConflictOracle:
        return ConflictOracle(
            base_url="http://backend.test/api",
            token=token,
            transport=httpx.MockTransport(self),
        )


@pytest.fixture
def backend():
    return FakeBackend()
