# services/config_cache.py
import threading
import time
from dataclasses import dataclass

import structlog

from models.project import ProjectConfig

logger = structlog.get_logger(__name__)

DEFAULT_TTL = 24 * 60 * 60


@dataclass(frozen=True)
class _Entry:
    config: ProjectConfig
    expires_at: float


class ConfigCache:
    """TTL cache of project configs keyed by project id.

    Expiry is lazy: a stale entry is dropped by the `get` that finds it.
    Besides the entries, the cache keeps the newest `update_time` it has
    accepted per project, so a read-through that loaded a row before an
    admin update committed cannot overwrite the refreshed entry.

    Usage:
        cache = ConfigCache(ttl=3600)
        cache.set(project.id, project)
        config, hit = cache.get(project.id)
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock=time.monotonic):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[int, _Entry] = {}
        self._newest: dict[int, float] = {}

    def get(self, project_id: int) -> tuple[ProjectConfig | None, bool]:
        with self._lock:
            entry = self._entries.get(project_id)
            if entry is None:
                return None, False
            if self._clock() >= entry.expires_at:
                del self._entries[project_id]
                return None, False
            return entry.config, True

    def set(self, project_id: int, config: ProjectConfig, ttl: float | None = None) -> bool:
        """Store a copy of `config`; returns False if a newer one was already seen."""
        with self._lock:
            newest = self._newest.get(project_id)
            if newest is not None and config.update_time < newest:
                logger.debug(
                    "Rejected stale project config",
                    project_id=project_id,
                    update_time=config.update_time,
                    newest=newest,
                )
                return False
            self._newest[project_id] = config.update_time
            self._entries[project_id] = _Entry(
                config=config,
                expires_at=self._clock() + (self.ttl if ttl is None else ttl),
            )
            return True

    def invalidate(self, project_id: int) -> None:
        with self._lock:
            self._entries.pop(project_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._newest.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
