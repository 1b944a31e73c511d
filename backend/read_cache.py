# read_cache.py — Short-lived per-user cache for the team and board list views
#
# Single-process and in-memory. Expiry is passive: an entry is dropped when a
# read finds it stale. A shared backend (Redis) only needs to implement the
# same get / set / invalidate surface.

import os
import time
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from fastapi import Request

logger = logging.getLogger("taskboard.cache")

CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))

USER_TEAMS_PREFIX = "user_teams_"
USER_BOARDS_PREFIX = "user_boards_"


def user_teams_key(user_id: str) -> str:
    return f"{USER_TEAMS_PREFIX}{user_id}"


def user_boards_key(user_id: str) -> str:
    return f"{USER_BOARDS_PREFIX}{user_id}"


class ReadCache:
    """Key/value store with per-entry TTL"""

    def __init__(self, ttl_seconds: int = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def invalidate_user_views(
    cache: ReadCache,
    user_ids: Iterable[Optional[str]],
    teams: bool = True,
    boards: bool = True,
) -> None:
    """Drop cached team and/or board list views for every given user."""
    affected = {uid for uid in user_ids if uid}
    for uid in affected:
        if teams:
            cache.invalidate(user_teams_key(uid))
        if boards:
            cache.invalidate(user_boards_key(uid))
    if affected:
        logger.debug(f"Invalidated list views for {len(affected)} user(s) (teams={teams}, boards={boards})")


def get_read_cache(request: Request) -> ReadCache:
    """FastAPI dependency: the application's cache instance"""
    return request.app.state.read_cache
