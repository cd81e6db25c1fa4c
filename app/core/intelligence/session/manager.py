"""Session store for booking conversations (in-memory or Redis)."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError

from app.config import settings
from app.infra.redis import APP_PREFIX, RedisClient, get_redis
from .models import SessionData
from .state import BookingState


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


logger = logging.getLogger(__name__)

# Key prefixes (extend APP_PREFIX)
SESSION_PREFIX = f"{APP_PREFIX}session:"
LOCK_PREFIX = f"{APP_PREFIX}session-lock:"


class SessionBusyError(Exception):
    """Raised when a turn cannot acquire its session lock in time."""
    pass


class SessionManager:
    """
    Session store with idle-timeout eviction and per-session turn locks.

    Key pattern: driving-school:v1:session:{session_id}

    The redis backend falls back to process memory while Redis is
    unreachable, as the memory backend does permanently.
    """

    def __init__(
        self,
        backend: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        lock_timeout: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize session manager.

        Args:
            backend: "memory" or "redis" (defaults to settings)
            ttl_seconds: Idle time before a session is evicted
            lock_timeout: Max seconds a turn waits for, or holds, the lock
            clock: Monotonic clock for in-memory expiry (for testing)
        """
        self._backend = backend or settings.session_backend
        self._ttl = ttl_seconds or settings.session_ttl_seconds
        self._lock_timeout = lock_timeout or settings.session_lock_timeout_seconds
        self._clock = clock or time.monotonic

        # session_id -> (json, expires_at)
        self._memory: dict[str, tuple[str, float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def _key(self, session_id: str) -> str:
        """Generate Redis key."""
        return f"{SESSION_PREFIX}{session_id}"

    async def _redis(self) -> Optional[Redis]:
        """Redis client when the redis backend is configured and reachable."""
        if self._backend != "redis":
            return None
        client = await get_redis()
        if client is None:
            logger.warning("Redis unavailable, using in-memory session fallback")
        return client

    def _redis_failed(self, operation: str, error: RedisError) -> None:
        logger.error(f"Redis {operation} failed, using in-memory fallback: {error}")
        RedisClient.mark_disconnected()

    def _evict_expired(self) -> None:
        """Drop in-memory sessions past their idle deadline."""
        now = self._clock()
        expired = [sid for sid, (_, expires) in self._memory.items() if expires <= now]
        for session_id in expired:
            del self._memory[session_id]
        if expired:
            logger.debug(f"Evicted {len(expired)} idle sessions")

    # === CRUD ===

    async def get(self, session_id: str) -> Optional[SessionData]:
        """
        Get session by ID.

        Returns:
            SessionData or None if absent or expired
        """
        redis = await self._redis()

        if redis:
            try:
                data = await redis.get(self._key(session_id))
                return SessionData.from_json(data) if data else None
            except RedisError as e:
                self._redis_failed("get", e)

        entry = self._memory.get(session_id)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at <= self._clock():
            del self._memory[session_id]
            return None
        return SessionData.from_json(data)

    async def get_or_create(self, session_id: str) -> SessionData:
        """
        Get existing session or create a new idle one under the given ID.

        Returns:
            Existing or new SessionData
        """
        session = await self.get(session_id)
        if session is not None:
            return session

        session = SessionData(session_id=session_id, state=BookingState.IDLE)
        await self.save(session)
        logger.debug(f"Session created: {session_id}")
        return session

    async def save(self, session: SessionData) -> bool:
        """
        Save session and refresh its idle TTL.

        Returns:
            True if saved successfully
        """
        session.updated_at = _utcnow()
        payload = session.to_json()

        redis = await self._redis()

        if redis:
            try:
                await redis.setex(self._key(session.session_id), self._ttl, payload)
                logger.debug(f"Session saved: {session.session_id}")
                return True
            except RedisError as e:
                self._redis_failed("save", e)

        self._evict_expired()
        self._memory[session.session_id] = (payload, self._clock() + self._ttl)
        return True

    async def delete(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a session was removed
        """
        redis = await self._redis()

        if redis:
            try:
                deleted = await redis.delete(self._key(session_id))
                if deleted:
                    logger.debug(f"Session deleted: {session_id}")
                return bool(deleted)
            except RedisError as e:
                self._redis_failed("delete", e)

        return self._memory.pop(session_id, None) is not None

    async def list_session_ids(self) -> list[str]:
        """IDs of all live sessions."""
        redis = await self._redis()

        if redis:
            try:
                ids = [
                    key[len(SESSION_PREFIX):]
                    async for key in redis.scan_iter(match=f"{SESSION_PREFIX}*")
                ]
                return sorted(ids)
            except RedisError as e:
                self._redis_failed("scan", e)

        self._evict_expired()
        return sorted(self._memory)

    # === Turn serialisation ===

    @asynccontextmanager
    async def turn(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the per-session lock for one turn.

        Turns for the same session ID run one at a time, in arrival order
        for the in-memory lock.

        Raises:
            SessionBusyError: If the lock is not acquired within the timeout
        """
        redis = await self._redis()

        if redis:
            lock = redis.lock(
                f"{LOCK_PREFIX}{session_id}",
                timeout=self._lock_timeout,
                blocking_timeout=self._lock_timeout,
            )
            try:
                acquired = await lock.acquire()
            except RedisError as e:
                self._redis_failed("lock", e)
            else:
                if not acquired:
                    raise SessionBusyError(f"Session {session_id} is busy")
                try:
                    yield
                finally:
                    try:
                        await lock.release()
                    except LockError as e:
                        logger.warning(f"Session lock for {session_id} expired mid-turn: {e}")
                return

        async with self._local_lock(session_id):
            yield

    @asynccontextmanager
    async def _local_lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._lock_timeout)
            except asyncio.TimeoutError:
                raise SessionBusyError(f"Session {session_id} is busy") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                del self._locks[session_id]


# Singleton
_manager: Optional[SessionManager] = None


async def get_session_manager() -> SessionManager:
    """Get singleton SessionManager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager
