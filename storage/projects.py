# storage/projects.py
import time

from db import transaction
from models.project import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    PATCH_COLUMNS,
    ProjectConfig,
    ProjectPatch,
)


def create_project(
    name: str,
    token: str = "",
    creator_id: int | None = None,
    base_url: str = DEFAULT_BASE_URL,
    model: str = DEFAULT_MODEL,
    temperature: float = 1.0,
    top_p: float = 1.0,
    max_tokens: int = 1024,
    enabled: bool = True,
) -> ProjectConfig:
    now = time.time()
    with transaction() as conn:
        cur = conn.execute("""
        INSERT INTO projects (
            name, enabled, openai_base_url, openai_model, openai_token,
            openai_temperature, openai_top_p, openai_max_tokens,
            creator_id, create_time, update_time
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (name, int(enabled), base_url, model, token, temperature, top_p,
              max_tokens, creator_id, now, now))
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (cur.lastrowid,)).fetchone()
    return ProjectConfig.from_row(row)


def list_projects(cursor: int, limit: int) -> tuple[int, list[ProjectConfig]]:
    with transaction() as conn:
        rows = conn.execute(
            "SELECT * FROM projects WHERE id < ? ORDER BY id DESC LIMIT ?",
            (cursor, limit),
        ).fetchall()
        count = conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0]
    return count, [ProjectConfig.from_row(row) for row in rows]


def get_project(project_id: int) -> ProjectConfig | None:
    with transaction() as conn:
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    return ProjectConfig.from_row(row) if row else None


def update_project(project_id: int, patch: ProjectPatch) -> ProjectConfig | None:
    """Apply the patch and return the committed row, or None if the project is unknown.

    update_time strictly increases on every write, even when two writes land
    within the clock's resolution.
    """
    changes = patch.changes()
    assignments = [f"{PATCH_COLUMNS[name]} = ?" for name in changes]
    values = [int(v) if isinstance(v, bool) else v for v in changes.values()]
    assignments.append("update_time = MAX(?, update_time + 0.000001)")
    values.append(time.time())

    with transaction() as conn:
        cur = conn.execute(
            f"UPDATE projects SET {', '.join(assignments)} WHERE id = ?",
            (*values, project_id),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    return ProjectConfig.from_row(row)
