# db.py
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from services.errors import StoreUnavailable

DB_PATH = Path("storage/app.db")


def configure(path) -> None:
    global DB_PATH
    DB_PATH = Path(path)


def get_db():
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction():
    """Yield a connection, commit on success and always close it.

    Integrity errors propagate untouched so callers can turn them into
    input errors; any other sqlite failure becomes StoreUnavailable.
    """
    try:
        conn = get_db()
    except sqlite3.Error as e:
        raise StoreUnavailable(str(e)) from e
    try:
        yield conn
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreUnavailable(str(e)) from e
    finally:
        conn.close()


def init_db():
    with transaction() as conn:
        cur = conn.cursor()

        # Users table
        cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            addr TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL DEFAULT '',
            level INTEGER NOT NULL DEFAULT 1,
            create_time REAL NOT NULL
        )
        """)

        # Projects table
        cur.execute("""
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            enabled INTEGER NOT NULL DEFAULT 1,
            openai_base_url TEXT NOT NULL,
            openai_model TEXT NOT NULL,
            openai_token TEXT NOT NULL DEFAULT '',
            openai_temperature REAL NOT NULL,
            openai_top_p REAL NOT NULL,
            openai_max_tokens INTEGER NOT NULL,
            creator_id INTEGER,
            create_time REAL NOT NULL,
            update_time REAL NOT NULL
        )
        """)

        # Prompts table
        cur.execute("""
        CREATE TABLE IF NOT EXISTS prompts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            prompts TEXT NOT NULL,
            variables TEXT NOT NULL,
            public_level TEXT NOT NULL DEFAULT 'protected',
            token_count INTEGER NOT NULL DEFAULT 0,
            creator_id INTEGER,
            create_time REAL NOT NULL,
            update_time REAL NOT NULL,
            FOREIGN KEY(project_id) REFERENCES projects(id)
        )
        """)

        # Prompt call metrics
        cur.execute("""
        CREATE TABLE IF NOT EXISTS prompt_calls (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            prompt_id INTEGER,
            outcome TEXT NOT NULL,
            latency_ms REAL NOT NULL DEFAULT 0,
            response_tokens INTEGER NOT NULL DEFAULT 0,
            user_agent TEXT NOT NULL DEFAULT '',
            create_time REAL NOT NULL
        )
        """)
        cur.execute("""
        CREATE INDEX IF NOT EXISTS idx_prompt_calls_project_time
        ON prompt_calls(project_id, create_time)
        """)
