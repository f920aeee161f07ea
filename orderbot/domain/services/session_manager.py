# orderbot/domain/services/session_manager.py
"""
Per-actor serialisation and session ownership.

``KeyedLock`` hands out one ``asyncio.Lock`` per active key.  Waiters are
served in arrival order (asyncio locks are FIFO) and the lock is dropped as
soon as nobody holds or waits for it, so idle actors cost nothing.

``SessionManager`` is the only owner of customer sessions: every read and
write happens through it, inside ``hold(customer_id)``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from orderbot.domain.errors import SessionStoreError
from orderbot.domain.models import Session
from orderbot.domain.ports import SessionStore

logger = logging.getLogger("session_manager")


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLock:
    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[key]

    def is_active(self, key: str) -> bool:
        return key in self._slots

    def __len__(self) -> int:
        return len(self._slots)


class SessionManager:
    def __init__(self, store: SessionStore, locks: Optional[KeyedLock] = None) -> None:
        self._store = store
        self.locks = locks or KeyedLock()
        # Sessions that must start fresh because clearing them failed
        self._stale: set[str] = set()

    def hold(self, key: str):
        return self.locks.hold(key)

    async def load(self, customer_id: str) -> Session:
        """Fetch the session, creating a fresh one on first contact."""
        if customer_id in self._stale:
            return Session(customer_id=customer_id)
        session = await self._store.get(customer_id)
        if session is None:
            logger.debug("New session for %s", customer_id)
            session = Session(customer_id=customer_id)
        return session

    async def commit(self, session: Session) -> None:
        await self._store.save(session)
        self._stale.discard(session.customer_id)

    async def discard(self, customer_id: str) -> None:
        """Forget a session while already holding its key.

        If the backend refuses, the session is remembered as stale and the
        next ``load`` starts fresh instead of returning the stored copy.
        """
        try:
            await self._store.clear(customer_id)
        except SessionStoreError as exc:
            logger.error("Could not clear session for %s, marking stale: %s", customer_id, exc)
            self._stale.add(customer_id)
        else:
            self._stale.discard(customer_id)

    async def release(self, customer_id: str) -> None:
        """Drop a customer's session so the next message starts fresh.

        Takes the customer's key itself; callers must not already hold it.
        """
        async with self.hold(customer_id):
            await self.discard(customer_id)
        logger.info("Released session for %s", customer_id)
