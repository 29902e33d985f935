from typing import Optional

from fastapi import Depends

from app.services.conflict_oracle import ConflictOracle
from app.utils.auth import get_bearer_token


async def get_oracle(token: Optional[str] = Depends(get_bearer_token)):
    oracle = ConflictOracle(token=token)
    try:
        yield oracle
    finally:
        await oracle.aclose()
