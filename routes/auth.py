# routes/auth.py
import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

from services.errors import UserNotFound, VerificationError
from services.signature import verify_signature
from storage.users import get_user_by_addr

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginPayload(BaseModel):
    address: str
    message: str
    signature: str


@router.post("/login")
async def login_api(payload: LoginPayload, request: Request):
    if not verify_signature(payload.address, payload.message, payload.signature):
        logger.info("Rejected login with mismatched signature", address=payload.address.lower())
        raise VerificationError("invalid signature")

    user = get_user_by_addr(payload.address)
    if user is None:
        raise UserNotFound(f"no user registered for {payload.address.lower()}")

    settings = request.app.state.settings
    token = request.app.state.sessions.issue(user.id, settings.session_ttl)
    logger.info("User logged in", uid=user.id)
    return {"token": token, "user": user.to_dict()}


@router.post("/logout")
async def logout_api():
    # sessions are stateless; the client just drops its token
    return {"status": "ok"}
