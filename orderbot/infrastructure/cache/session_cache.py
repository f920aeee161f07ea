import json
from typing import Optional

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from orderbot.domain.errors import SessionStoreError
from orderbot.domain.models import Session

SESSION_TTL_SECONDS = 24 * 60 * 60


class InMemorySessionStore:
    """Process-local sessions; lost on restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def get(self, customer_id: str) -> Optional[Session]:
        return self._sessions.get(customer_id)

    async def save(self, session: Session) -> None:
        self._sessions[session.customer_id] = session

    async def clear(self, customer_id: str) -> None:
        self._sessions.pop(customer_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore:
    """Sessions as JSON in redis.  Locking stays in-process."""

    def __init__(self, redis_url: str, ttl_seconds: int = SESSION_TTL_SECONDS, client: Optional[redis.Redis] = None):
        if client is None:
            if not redis_url:
                raise RuntimeError("REDIS_URL is not set")
            client = redis.from_url(redis_url, decode_responses=True)
        self._r = client
        self.ttl_seconds = ttl_seconds

    def _key(self, customer_id: str) -> str:
        return f"orderbot:session:{customer_id}"

    async def get(self, customer_id: str) -> Optional[Session]:
        try:
            raw = await self._r.get(self._key(customer_id))
        except RedisError as e:
            logger.error("Session read failed for {}: {}", customer_id, e)
            raise SessionStoreError(f"Could not load session for {customer_id}") from e
        if not raw:
            return None
        try:
            return Session.model_validate(json.loads(raw))
        except ValueError:
            # Unreadable (older format); start over.
            return None

    async def save(self, session: Session) -> None:
        try:
            await self._r.set(
                self._key(session.customer_id),
                session.model_dump_json(),
                ex=self.ttl_seconds,
            )
        except RedisError as e:
            logger.error("Session write failed for {}: {}", session.customer_id, e)
            raise SessionStoreError(f"Could not save session for {session.customer_id}") from e

    async def clear(self, customer_id: str) -> None:
        try:
            await self._r.delete(self._key(customer_id))
        except RedisError as e:
            logger.error("Session delete failed for {}: {}", customer_id, e)
            raise SessionStoreError(f"Could not clear session for {customer_id}") from e
