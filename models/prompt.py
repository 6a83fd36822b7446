# models/prompt.py
import json
from dataclasses import dataclass
from enum import Enum


class PublicLevel(str, Enum):
    PRIVATE = "private"
    PROTECTED = "protected"
    PUBLIC = "public"


@dataclass(frozen=True)
class MessageRow:
    role: str
    prompt: str

    def to_dict(self) -> dict:
        return {"role": self.role, "prompt": self.prompt}


@dataclass(frozen=True)
class VariableDeclaration:
    name: str
    type: str = "string"
    default: str | None = None

    @property
    def required(self) -> bool:
        return self.default is None

    def to_dict(self) -> dict:
        data = {"name": self.name, "type": self.type}
        if self.default is not None:
            data["default"] = self.default
        return data


@dataclass(frozen=True)
class PromptTemplate:
    id: int
    project_id: int
    name: str
    description: str
    prompts: tuple[MessageRow, ...]
    variables: tuple[VariableDeclaration, ...]
    public_level: PublicLevel
    token_count: int
    creator_id: int | None
    create_time: float
    update_time: float

    @classmethod
    def from_row(cls, row) -> "PromptTemplate":
        return cls(
            id=row["id"],
            project_id=row["project_id"],
            name=row["name"],
            description=row["description"],
            prompts=tuple(MessageRow(**r) for r in json.loads(row["prompts"])),
            variables=tuple(VariableDeclaration(**v) for v in json.loads(row["variables"])),
            public_level=PublicLevel(row["public_level"]),
            token_count=row["token_count"],
            creator_id=row["creator_id"],
            create_time=row["create_time"],
            update_time=row["update_time"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "name": self.name,
            "description": self.description,
            "prompts": [r.to_dict() for r in self.prompts],
            "variables": [v.to_dict() for v in self.variables],
            "publicLevel": self.public_level.value,
            "tokenCount": self.token_count,
            "creatorId": self.creator_id,
            "createTime": self.create_time,
            "updateTime": self.update_time,
        }


def dump_rows(rows) -> str:
    return json.dumps([r.to_dict() for r in rows], ensure_ascii=False)


def dump_variables(variables) -> str:
    return json.dumps([v.to_dict() for v in variables], ensure_ascii=False)
