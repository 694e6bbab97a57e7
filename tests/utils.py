from __future__ import annotations

import fnmatch
from typing import Any, Dict, Optional

from dialogpro.settings import Settings


class FakeRedis:
    """
    Minimal async Redis replacement supporting the commands the relay uses.
    Expiry follows a manual clock moved with `advance()`.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._expires: Dict[str, float] = {}
        self.now = 0.0

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _alive(self, key: str) -> bool:
        expires_at = self._expires.get(key)
        if expires_at is not None and expires_at <= self.now:
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return key in self._data

    async def get(self, key: str):
        if not self._alive(key):
            return None
        return self._data[key]

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self._data[key] = value
        if ex is not None:
            self._expires[key] = self.now + ex
        else:
            self._expires.pop(key, None)
        return True

    async def delete(self, *keys: str):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return removed

    async def keys(self, pattern: str):
        return [k for k in list(self._data) if self._alive(k) and fnmatch.fnmatchcase(k, pattern)]

    async def expire(self, key: str, seconds: int):
        if not self._alive(key):
            return False
        self._expires[key] = self.now + seconds
        return True

    async def lpush(self, key: str, value: str):
        lst = self._data.get(key) if self._alive(key) else None
        if not isinstance(lst, list):
            lst = []
        lst.insert(0, value)
        self._data[key] = lst
        return len(lst)

    async def ltrim(self, key: str, start: int, end: int):
        if not self._alive(key):
            return True
        slice_end = None if end == -1 else end + 1
        self._data[key] = self._data[key][start:slice_end]
        return True

    async def lrange(self, key: str, start: int, end: int):
        if not self._alive(key):
            return []
        slice_end = None if end == -1 else end + 1
        return self._data[key][start:slice_end]


class DictSessionBackend:
    """SessionBackend kept in a plain dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.values: Dict[str, str] = dict(initial or {})
        self.ttls: Dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    async def set(self, key: str, value: str, *, ttl_seconds: int) -> None:
        self.values[key] = value
        self.ttls[key] = ttl_seconds

    async def expire(self, key: str) -> None:
        self.values.pop(key, None)
        self.ttls.pop(key, None)


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "api_endpoint": "https://chat.example.test/api/chat",
        "api_token": "upstream-token",
        "secret_key": "test-secret",
        "admin_token": "admin-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)
