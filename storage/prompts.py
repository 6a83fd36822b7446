# storage/prompts.py
import time

from db import transaction
from models.prompt import PromptTemplate, PublicLevel, dump_rows, dump_variables

# Columns a prompt update may touch, keyed by PromptTemplate field name.
UPDATABLE = {
    "name": "name",
    "description": "description",
    "prompts": "prompts",
    "variables": "variables",
    "public_level": "public_level",
    "token_count": "token_count",
}


def create_prompt(
    project_id: int,
    name: str,
    prompts,
    variables=(),
    description: str = "",
    public_level: PublicLevel = PublicLevel.PROTECTED,
    token_count: int = 0,
    creator_id: int | None = None,
) -> PromptTemplate:
    now = time.time()
    with transaction() as conn:
        cur = conn.execute("""
        INSERT INTO prompts (
            project_id, name, description, prompts, variables,
            public_level, token_count, creator_id, create_time, update_time
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (project_id, name, description, dump_rows(prompts), dump_variables(variables),
              PublicLevel(public_level).value, token_count, creator_id, now, now))
        row = conn.execute("SELECT * FROM prompts WHERE id = ?", (cur.lastrowid,)).fetchone()
    return PromptTemplate.from_row(row)


def get_prompt(prompt_id: int) -> PromptTemplate | None:
    with transaction() as conn:
        row = conn.execute("SELECT * FROM prompts WHERE id = ?", (prompt_id,)).fetchone()
    return PromptTemplate.from_row(row) if row else None


def list_prompts(
    cursor: int,
    limit: int,
    project_id: int | None = None,
    public_level: PublicLevel | None = None,
) -> tuple[int, list[PromptTemplate]]:
    where, params = [], []
    if project_id is not None:
        where.append("project_id = ?")
        params.append(project_id)
    if public_level is not None:
        where.append("public_level = ?")
        params.append(PublicLevel(public_level).value)
    clause = " AND ".join(where) if where else "1 = 1"

    with transaction() as conn:
        rows = conn.execute(
            f"SELECT * FROM prompts WHERE {clause} AND id < ? ORDER BY id DESC LIMIT ?",
            (*params, cursor, limit),
        ).fetchall()
        count = conn.execute(f"SELECT COUNT(*) FROM prompts WHERE {clause}", params).fetchone()[0]
    return count, [PromptTemplate.from_row(row) for row in rows]


def get_prompts(prompt_ids) -> list[PromptTemplate]:
    ids = list(prompt_ids)
    if not ids:
        return []
    marks = ", ".join("?" for _ in ids)
    with transaction() as conn:
        rows = conn.execute(f"SELECT * FROM prompts WHERE id IN ({marks})", ids).fetchall()
    return [PromptTemplate.from_row(row) for row in rows]


def update_prompt(prompt_id: int, data: dict) -> PromptTemplate | None:
    """Update the given fields (PromptTemplate names) and return the new row."""
    assignments, values = [], []
    for name, value in data.items():
        if name == "prompts":
            value = dump_rows(value)
        elif name == "variables":
            value = dump_variables(value)
        elif name == "public_level":
            value = PublicLevel(value).value
        assignments.append(f"{UPDATABLE[name]} = ?")
        values.append(value)
    assignments.append("update_time = ?")
    values.append(time.time())

    with transaction() as conn:
        cur = conn.execute(
            f"UPDATE prompts SET {', '.join(assignments)} WHERE id = ?",
            (*values, prompt_id),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT * FROM prompts WHERE id = ?", (prompt_id,)).fetchone()
    return PromptTemplate.from_row(row)
