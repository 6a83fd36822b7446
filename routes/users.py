# routes/users.py
import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from routes.deps import MAX_INT, ObjectId, Pagination, current_user_id
from services.errors import MalformedInput, UserNotFound
from services.signature import ADDRESS_RE
from storage.users import create_user, delete_user, list_users

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"], dependencies=[Depends(current_user_id)])


class CreateUserPayload(BaseModel):
    addr: str
    name: str = ""
    email: str = ""
    level: int = Field(1, ge=0, le=MAX_INT)


@router.get("")
async def list_users_api(page: Pagination = Depends()):
    count, users = list_users(page.cursor, page.limit)
    return {"count": count, "data": [u.to_dict() for u in users]}


@router.post("")
async def create_user_api(payload: CreateUserPayload):
    if not ADDRESS_RE.fullmatch(payload.addr):
        raise MalformedInput("addr must be 0x followed by 40 hex digits")
    user = create_user(payload.addr, name=payload.name, email=payload.email, level=payload.level)
    logger.info("User created", uid=user.id)
    return user.to_dict()


@router.delete("/{user_id}")
async def delete_user_api(user_id: ObjectId):
    if not delete_user(user_id):
        raise UserNotFound()
    return {"status": "deleted"}
