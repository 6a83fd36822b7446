# routes/prompts.py
import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from models.prompt import MessageRow, PublicLevel, VariableDeclaration
from routes.deps import MAX_INT, ObjectId, Pagination, current_user_id
from services.errors import MalformedInput, ProjectNotFound, PromptNotFound
from services.renderer import placeholders
from storage.projects import get_project
from storage.prompts import create_prompt, get_prompt, list_prompts, update_prompt

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/prompts", tags=["Prompts"], dependencies=[Depends(current_user_id)])


class PromptRowPayload(BaseModel):
    role: str = Field(min_length=1)
    prompt: str


class VariablePayload(BaseModel):
    name: str = Field(min_length=1)
    type: str = "string"
    default: str | None = None


class CreatePromptPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: int = Field(alias="projectId", ge=1, le=MAX_INT)
    name: str = Field(min_length=1)
    description: str = ""
    token_count: int = Field(0, alias="tokenCount", ge=0, le=MAX_INT)
    prompts: list[PromptRowPayload] = Field(min_length=1)
    variables: list[VariablePayload] = []
    public_level: PublicLevel = Field(PublicLevel.PROTECTED, alias="publicLevel")


class UpdatePromptPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    token_count: int | None = Field(None, alias="tokenCount", ge=0, le=MAX_INT)
    prompts: list[PromptRowPayload] | None = Field(None, min_length=1)
    variables: list[VariablePayload] | None = None
    public_level: PublicLevel | None = Field(None, alias="publicLevel")


class TestPromptPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: int = Field(alias="projectId", ge=1, le=MAX_INT)
    prompts: list[PromptRowPayload] = Field(min_length=1)
    variables: list[VariablePayload] = []
    values: dict[str, str] = {}


def to_rows(payload) -> tuple[MessageRow, ...]:
    return tuple(MessageRow(role=r.role, prompt=r.prompt) for r in payload)


def to_declarations(payload) -> tuple[VariableDeclaration, ...]:
    return tuple(VariableDeclaration(name=v.name, type=v.type, default=v.default) for v in payload)


def check_declared(rows, declarations) -> None:
    declared = {d.name for d in declarations}
    for row in rows:
        for name in placeholders(row.prompt):
            if name not in declared:
                raise MalformedInput(f"placeholder {{{{{name}}}}} is not a declared variable")


@router.get("")
async def list_prompts_api(page: Pagination = Depends()):
    count, prompts = list_prompts(page.cursor, page.limit)
    return {"count": count, "data": [p.to_dict() for p in prompts]}


@router.get("/{prompt_id}")
async def get_prompt_api(prompt_id: ObjectId):
    prompt = get_prompt(prompt_id)
    if not prompt:
        raise PromptNotFound()
    return prompt.to_dict()


@router.post("")
async def create_prompt_api(payload: CreatePromptPayload, uid: int = Depends(current_user_id)):
    if get_project(payload.project_id) is None:
        raise ProjectNotFound()

    rows = to_rows(payload.prompts)
    declarations = to_declarations(payload.variables)
    check_declared(rows, declarations)

    prompt = create_prompt(
        project_id=payload.project_id,
        name=payload.name,
        description=payload.description,
        prompts=rows,
        variables=declarations,
        public_level=payload.public_level,
        token_count=payload.token_count,
        creator_id=uid,
    )
    logger.info("Prompt created", prompt_id=prompt.id, project_id=prompt.project_id)
    return prompt.to_dict()


@router.put("/{prompt_id}")
async def update_prompt_api(prompt_id: ObjectId, payload: UpdatePromptPayload):
    current = get_prompt(prompt_id)
    if current is None:
        raise PromptNotFound()

    data = payload.model_dump(exclude_none=True)
    if payload.prompts is not None:
        data["prompts"] = to_rows(payload.prompts)
    if payload.variables is not None:
        data["variables"] = to_declarations(payload.variables)
    check_declared(data.get("prompts", current.prompts), data.get("variables", current.variables))

    if not data:
        return current.to_dict()
    prompt = update_prompt(prompt_id, data)
    if prompt is None:
        raise PromptNotFound()
    return prompt.to_dict()


@router.post("/test")
async def test_prompt_api(payload: TestPromptPayload, request: Request):
    """Run unsaved rows against a project without recording a prompt call."""
    result = await request.app.state.dispatcher.execute(
        payload.project_id,
        to_rows(payload.prompts),
        to_declarations(payload.variables),
        payload.values,
        record=False,
        is_disconnected=request.is_disconnected,
        user_agent=request.headers.get("user-agent", ""),
    )
    return result.to_dict()
