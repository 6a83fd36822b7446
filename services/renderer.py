# services/renderer.py
import re
from dataclasses import dataclass

from models.prompt import MessageRow, VariableDeclaration
from services.errors import MissingVariable

PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")


@dataclass(frozen=True)
class RenderedMessage:
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


def placeholders(text: str) -> list[str]:
    """Variable names referenced by `text`, in order of appearance."""
    return PLACEHOLDER_RE.findall(text)


def render(
    rows: list[MessageRow] | tuple[MessageRow, ...],
    variables: dict,
    declarations: list[VariableDeclaration] | tuple[VariableDeclaration, ...] = (),
) -> list[RenderedMessage]:
    """Substitute `{{name}}` placeholders row by row.

    Declared defaults fill in for variables the caller left out. Unused
    variables are ignored. Substituted values are not scanned again.
    """
    supplied = {k: v for k, v in (variables or {}).items() if v is not None}

    for decl in declarations:
        if decl.required and decl.name not in supplied:
            raise MissingVariable(decl.name)

    values = {d.name: d.default for d in declarations if d.default is not None}
    values.update({k: str(v) for k, v in supplied.items()})

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in values:
            raise MissingVariable(name)
        return values[name]

    return [
        RenderedMessage(role=row.role, content=PLACEHOLDER_RE.sub(substitute, row.prompt))
        for row in rows
    ]
