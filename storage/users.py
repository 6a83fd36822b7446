# storage/users.py
import sqlite3
import time

from db import transaction
from models.user import User
from services.errors import MalformedInput


def create_user(addr: str, name: str = "", email: str = "", level: int = 1) -> User:
    addr = addr.lower()
    try:
        with transaction() as conn:
            cur = conn.execute("""
            INSERT INTO users (name, addr, email, level, create_time)
            VALUES (?, ?, ?, ?, ?)
            """, (name or addr, addr, email, level, time.time()))
            row = conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,)).fetchone()
    except sqlite3.IntegrityError as e:
        raise MalformedInput(f"address already registered: {addr}") from e
    return User.from_row(row)


def ensure_user(addr: str, **kwargs) -> User:
    return get_user_by_addr(addr) or create_user(addr, **kwargs)


def get_user(user_id: int) -> User | None:
    with transaction() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return User.from_row(row) if row else None


def get_user_by_addr(addr: str) -> User | None:
    with transaction() as conn:
        row = conn.execute("SELECT * FROM users WHERE addr = ?", (addr.lower(),)).fetchone()
    return User.from_row(row) if row else None


def list_users(cursor: int, limit: int) -> tuple[int, list[User]]:
    with transaction() as conn:
        rows = conn.execute(
            "SELECT * FROM users WHERE id < ? ORDER BY id DESC LIMIT ?",
            (cursor, limit),
        ).fetchall()
        count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
    return count, [User.from_row(row) for row in rows]


def delete_user(user_id: int) -> bool:
    with transaction() as conn:
        cur = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
    return cur.rowcount > 0
