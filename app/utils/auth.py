from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

# Tokens are issued by the campus backend; they are only passed through here.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_bearer_token(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    return token


def require_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return token
