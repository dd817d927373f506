"""Per-site advisory locks.

Any operation that touches a site directory holds that site's lock for its
whole duration, so start/stop/destroy/migrate on one site never interleave.
"""

from __future__ import annotations

import asyncio


class SiteLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}
        self._guard = asyncio.Lock()

    async def get(self, site: str) -> asyncio.Lock:
        """Get or create the lock for *site*. Pair every call with ``discard``."""
        async with self._guard:
            lock = self._locks.get(site)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[site] = lock
            self._users[site] = self._users.get(site, 0) + 1
            return lock

    def discard(self, site: str) -> None:
        """Forget *site*'s lock once no operation holds or waits on it."""
        users = self._users.get(site, 0) - 1
        if users > 0:
            self._users[site] = users
            return
        self._users.pop(site, None)
        self._locks.pop(site, None)

    def is_locked(self, site: str) -> bool:
        lock = self._locks.get(site)
        return bool(lock and lock.locked())

    def __contains__(self, site: str) -> bool:
        return site in self._locks
