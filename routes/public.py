# routes/public.py
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from models.prompt import PublicLevel
from routes.deps import MAX_INT, ObjectId, Pagination, require_api_key
from services.errors import PromptNotFound, PromptNotPublic
from storage.prompts import get_prompt, list_prompts

router = APIRouter(prefix="/public", tags=["Public"], dependencies=[Depends(require_api_key)])


class RunPromptPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: int = Field(alias="projectId", ge=1, le=MAX_INT)
    variables: dict[str, str | int | float | bool] = {}


@router.get("/prompts")
async def list_public_prompts_api(page: Pagination = Depends()):
    count, prompts = list_prompts(page.cursor, page.limit, public_level=PublicLevel.PUBLIC)
    return {"count": count, "data": [p.to_dict() for p in prompts]}


@router.post("/prompts/run/{prompt_id}")
async def run_prompt_api(prompt_id: ObjectId, payload: RunPromptPayload, request: Request):
    prompt = get_prompt(prompt_id)
    if prompt is None or prompt.project_id != payload.project_id:
        raise PromptNotFound(f"prompt {prompt_id} not found in project {payload.project_id}")
    if prompt.public_level == PublicLevel.PRIVATE:
        raise PromptNotPublic()

    result = await request.app.state.dispatcher.run(
        prompt,
        payload.variables,
        is_disconnected=request.is_disconnected,
        user_agent=request.headers.get("user-agent", ""),
    )
    return result.to_dict()
