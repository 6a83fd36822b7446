# routes/projects.py
import time

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from models.project import DEFAULT_BASE_URL, DEFAULT_MODEL, ProjectPatch
from routes.deps import MAX_INT, ObjectId, Pagination, current_user_id
from services.errors import ProjectNotFound
from storage.calls import top_prompts
from storage.projects import create_project, get_project, list_projects, update_project
from storage.prompts import get_prompts, list_prompts

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"], dependencies=[Depends(current_user_id)])

TOP_PROMPTS_WINDOW = 7 * 24 * 60 * 60


class CreateProjectPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    openai_token: str = Field("", alias="openaiToken")
    openai_base_url: str = Field(DEFAULT_BASE_URL, alias="openAIBaseURL")
    openai_model: str = Field(DEFAULT_MODEL, alias="openAIModel")


class UpdateProjectPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool | None = None
    openai_base_url: str | None = Field(None, alias="openAIBaseURL")
    openai_model: str | None = Field(None, alias="openAIModel")
    openai_token: str | None = Field(None, alias="openAIToken")
    openai_temperature: float | None = Field(None, alias="openAITemperature", ge=0, le=2)
    openai_top_p: float | None = Field(None, alias="openAITopP", ge=0, le=1)
    openai_max_tokens: int | None = Field(None, alias="openAIMaxTokens", gt=0, le=MAX_INT)

    def to_patch(self) -> ProjectPatch:
        return ProjectPatch(
            enabled=self.enabled,
            base_url=self.openai_base_url,
            model=self.openai_model,
            token=self.openai_token,
            temperature=self.openai_temperature,
            top_p=self.openai_top_p,
            max_tokens=self.openai_max_tokens,
        )


@router.get("")
async def list_projects_api(page: Pagination = Depends()):
    count, projects = list_projects(page.cursor, page.limit)
    return {"count": count, "data": [p.to_dict() for p in projects]}


@router.get("/{project_id}")
async def get_project_api(project_id: ObjectId):
    project = get_project(project_id)
    if not project:
        raise ProjectNotFound()
    return project.to_dict()


@router.post("")
async def create_project_api(payload: CreateProjectPayload, uid: int = Depends(current_user_id)):
    project = create_project(
        name=payload.name,
        token=payload.openai_token,
        base_url=payload.openai_base_url,
        model=payload.openai_model,
        creator_id=uid,
    )
    logger.info("Project created", project_id=project.id, uid=uid)
    return project.to_dict()


@router.put("/{project_id}")
async def update_project_api(project_id: ObjectId, payload: UpdateProjectPayload, request: Request):
    patch = payload.to_patch()
    if patch.is_empty():
        project = get_project(project_id)
    else:
        project = update_project(project_id, patch)
    if project is None:
        raise ProjectNotFound()

    # refresh only once the write has committed
    request.app.state.project_cache.set(project.id, project)
    logger.info("Project updated", project_id=project.id, fields=sorted(patch.changes()))
    return project.to_dict()


@router.get("/{project_id}/prompts")
async def list_project_prompts_api(project_id: ObjectId, page: Pagination = Depends()):
    count, prompts = list_prompts(page.cursor, page.limit, project_id=project_id)
    return {"count": count, "data": [p.to_dict() for p in prompts]}


@router.get("/{project_id}/metrics/top-prompts")
async def top_prompts_api(project_id: ObjectId):
    counts = top_prompts(project_id, since=time.time() - TOP_PROMPTS_WINDOW)
    prompts = {p.id: p for p in get_prompts(pid for pid, _ in counts)}
    data = [
        {"prompt": prompts[pid].to_dict(), "count": count}
        for pid, count in counts
        if pid in prompts
    ]
    return {"count": len(data), "data": data}
