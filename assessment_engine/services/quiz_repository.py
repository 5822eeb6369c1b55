"""
Quiz Repository - In-memory entities, per-entity locks, write-behind snapshots

Features:
- Storage-agnostic get/put/delete repositories for document sets and sessions
- One asyncio.Lock per entity key to serialize mutations
- Snapshot stores (in-memory, Redis with TTL and JSON payloads)
- Write-behind FIFO queue: saves are applied in submission order with
  retries; failures are logged and dropped, never surfaced

The in-memory entity is always authoritative. Snapshots only serve as a
restore source after a restart.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

import redis

from ..config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SNAPSHOT_PREFIX = "assessment:"


# ============================================================================
# Repositories
# ============================================================================

class InMemoryRepository(Generic[T]):
    """Dict-backed entity repository keyed by entity id"""

    def __init__(self, name: str):
        self.name = name
        self._items: Dict[str, T] = {}

    def get(self, entity_id: str) -> Optional[T]:
        return self._items.get(entity_id)

    def put(self, entity_id: str, entity: T) -> T:
        self._items[entity_id] = entity
        return entity

    def delete(self, entity_id: str) -> bool:
        return self._items.pop(entity_id, None) is not None

    def values(self) -> List[T]:
        return list(self._items.values())

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.values())


class EntityLocks:
    """
    Lazily created asyncio locks, one per entity key.

    Usage:
        async with locks.lock(f"session:{session_id}"):
            ...
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def discard(self, key: str):
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# ============================================================================
# Snapshot stores
# ============================================================================

class SnapshotStore:
    """Durable snapshot contract; save returns False on failure"""

    def load(self, kind: str, entity_id: str) -> Optional[dict]:
        raise NotImplementedError

    def save(self, kind: str, entity_id: str, data: dict) -> bool:
        raise NotImplementedError


class InMemorySnapshotStore(SnapshotStore):
    """Process-local snapshots (JSON round-tripped like the Redis store)"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def load(self, kind: str, entity_id: str) -> Optional[dict]:
        value = self._data.get(f"{kind}:{entity_id}")
        return json.loads(value) if value else None

    def save(self, kind: str, entity_id: str, data: dict) -> bool:
        self._data[f"{kind}:{entity_id}"] = json.dumps(data, default=str)
        return True


class RedisSnapshotStore(SnapshotStore):
    """
    Redis snapshots with TTL.

    Degrades gracefully: once a connection fails the store reports itself
    unavailable and every call becomes a logged no-op.
    """

    def __init__(self, redis_url: str = None, ttl: int = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.ttl = ttl or settings.SNAPSHOT_TTL_SECONDS
        self._client = None
        self._available = True

    @property
    def client(self) -> Optional[Any]:
        """Lazy load Redis client"""
        if not self._available:
            return None

        if self._client is None:
            try:
                self._client = redis.from_url(self.redis_url, decode_responses=True)
                self._client.ping()
                logger.info(f"[PERSIST] Connected to Redis: {self.redis_url}")
            except redis.RedisError as e:
                logger.error(f"[PERSIST] Redis connection failed: {e}")
                self._available = False
                self._client = None

        return self._client

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def _key(self, kind: str, entity_id: str) -> str:
        return f"{SNAPSHOT_PREFIX}{kind}:{entity_id}"

    def load(self, kind: str, entity_id: str) -> Optional[dict]:
        if not self.is_available:
            return None

        try:
            value = self.client.get(self._key(kind, entity_id))
            if value:
                logger.debug(f"[PERSIST] HIT {kind}:{entity_id[:8]}...")
                return json.loads(value)
            return None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.error(f"[PERSIST] LOAD failed: {e}")
            return None

    def save(self, kind: str, entity_id: str, data: dict) -> bool:
        if not self.is_available:
            return False

        try:
            self.client.setex(self._key(kind, entity_id), self.ttl, json.dumps(data, default=str))
            logger.debug(f"[PERSIST] SET {kind}:{entity_id[:8]}... TTL={self.ttl}s")
            return True
        except redis.RedisError as e:
            logger.error(f"[PERSIST] SET failed: {e}")
            return False


# ============================================================================
# Write-behind queue
# ============================================================================

class WriteBehindQueue:
    """
    Single-worker FIFO of snapshot saves.

    Payloads are captured at submit time, so a save reflects the entity as
    it was when submitted. Each save is retried up to max_retries times,
    then dropped with an error log.
    """

    def __init__(self, store: SnapshotStore, max_retries: int = None, retry_delay: float = 0.05):
        self.store = store
        self.max_retries = max_retries or settings.PERSIST_MAX_RETRIES
        self.retry_delay = retry_delay
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.saved = 0
        self.dropped = 0

    def submit(self, kind: str, entity_id: str, data: dict):
        """Queue a save; must be called from a running event loop"""
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        self._queue.put_nowait((kind, entity_id, data))

    async def _run(self):
        while True:
            kind, entity_id, data = await self._queue.get()
            try:
                await self._save_with_retries(kind, entity_id, data)
            finally:
                self._queue.task_done()

    async def _save_with_retries(self, kind: str, entity_id: str, data: dict):
        for attempt in range(1, self.max_retries + 1):
            try:
                ok = await asyncio.to_thread(self.store.save, kind, entity_id, data)
            except Exception as e:
                logger.warning(f"[PERSIST] {kind}:{entity_id[:8]}... attempt {attempt} raised: {e}")
                ok = False
            if ok:
                self.saved += 1
                return
            if attempt < self.max_retries:
                await asyncio.sleep(self.retry_delay * attempt)

        self.dropped += 1
        logger.error(f"[PERSIST] Dropped {kind}:{entity_id[:8]}... after {self.max_retries} attempts")

    async def flush(self):
        """Wait until every submitted save has been applied or dropped"""
        if self._queue is not None:
            await self._queue.join()

    async def close(self):
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def stats(self) -> Dict[str, int]:
        return {"pending": self.pending, "saved": self.saved, "dropped": self.dropped}


def create_snapshot_queue() -> Tuple[Optional[SnapshotStore], Optional[WriteBehindQueue]]:
    """Redis write-behind when SNAPSHOT_PERSISTENCE is on, else no persistence"""
    if not settings.SNAPSHOT_PERSISTENCE:
        return None, None
    store = RedisSnapshotStore()
    return store, WriteBehindQueue(store)
