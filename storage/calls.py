# storage/calls.py
import sqlite3

from db import transaction
from models.metric import ExecutionMetric
from services.errors import MetricRecordFailure, StoreUnavailable


def record_call(metric: ExecutionMetric) -> int:
    try:
        with transaction() as conn:
            cur = conn.execute("""
            INSERT INTO prompt_calls (
                project_id, prompt_id, outcome, latency_ms,
                response_tokens, user_agent, create_time
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (metric.project_id, metric.prompt_id, metric.outcome.value,
                  metric.latency_ms, metric.response_tokens, metric.user_agent,
                  metric.create_time))
    except (sqlite3.Error, StoreUnavailable) as e:
        raise MetricRecordFailure(str(e)) from e
    return cur.lastrowid


def top_prompts(project_id: int, since: float, limit: int = 5) -> list[tuple[int, int]]:
    """(prompt_id, call count) pairs for the most called prompts since `since`."""
    with transaction() as conn:
        rows = conn.execute("""
        SELECT prompt_id, COUNT(*) AS count
        FROM prompt_calls
        WHERE project_id = ? AND prompt_id IS NOT NULL AND create_time > ?
        GROUP BY prompt_id
        ORDER BY count DESC, prompt_id DESC
        LIMIT ?
        """, (project_id, since, limit)).fetchall()
    return [(row["prompt_id"], row["count"]) for row in rows]
