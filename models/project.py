# models/project.py
from dataclasses import dataclass, fields, replace

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"


@dataclass(frozen=True)
class ProjectConfig:
    id: int
    name: str
    enabled: bool
    base_url: str
    model: str
    token: str
    temperature: float
    top_p: float
    max_tokens: int
    creator_id: int | None
    create_time: float
    update_time: float

    @classmethod
    def from_row(cls, row) -> "ProjectConfig":
        return cls(
            id=row["id"],
            name=row["name"],
            enabled=bool(row["enabled"]),
            base_url=row["openai_base_url"],
            model=row["openai_model"],
            token=row["openai_token"],
            temperature=row["openai_temperature"],
            top_p=row["openai_top_p"],
            max_tokens=row["openai_max_tokens"],
            creator_id=row["creator_id"],
            create_time=row["create_time"],
            update_time=row["update_time"],
        )

    def to_dict(self) -> dict:
        # the provider token never leaves the server
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "openAIBaseURL": self.base_url,
            "openAIModel": self.model,
            "openAITemperature": self.temperature,
            "openAITopP": self.top_p,
            "openAIMaxTokens": self.max_tokens,
            "creatorId": self.creator_id,
            "createTime": self.create_time,
            "updateTime": self.update_time,
        }


# Maps patch fields to their column in the projects table.
PATCH_COLUMNS = {
    "enabled": "enabled",
    "base_url": "openai_base_url",
    "model": "openai_model",
    "token": "openai_token",
    "temperature": "openai_temperature",
    "top_p": "openai_top_p",
    "max_tokens": "openai_max_tokens",
}


@dataclass(frozen=True)
class ProjectPatch:
    """Partial update of a project's LLM settings. None means "leave as is"."""

    enabled: bool | None = None
    base_url: str | None = None
    model: str | None = None
    token: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None

    def changes(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.changes()

    def apply_to(self, config: ProjectConfig) -> ProjectConfig:
        return replace(config, **self.changes())
