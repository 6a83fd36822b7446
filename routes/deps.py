# routes/deps.py
import hmac
from typing import Annotated

from fastapi import Depends, Header, Path, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.errors import TokenError, TokenMalformed

security = HTTPBearer(auto_error=False)

# sqlite INTEGER is a signed 64-bit value
MAX_INT = 2**63 - 1
MAX_CURSOR = MAX_INT

ObjectId = Annotated[int, Path(ge=1, le=MAX_INT)]


class Pagination:
    def __init__(
        self,
        cursor: int = Query(MAX_CURSOR, ge=1, le=MAX_CURSOR),
        limit: int = Query(20, ge=1, le=100),
    ):
        self.cursor = cursor
        self.limit = limit


def current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    """Resolve the caller from the bearer session token, 401 otherwise."""
    if credentials is None:
        raise TokenMalformed("missing bearer token")
    uid = request.app.state.sessions.validate(credentials.credentials)
    request.state.uid = uid
    return uid


def require_api_key(
    request: Request,
    x_api_key: str | None = Header(None, alias="X-API-KEY"),
) -> None:
    keys = request.app.state.settings.public_api_keys
    if not keys:
        return
    if not x_api_key or not any(hmac.compare_digest(x_api_key.encode(), key.encode()) for key in keys):
        raise TokenError("invalid api key")
