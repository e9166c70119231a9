# marketingvoice/services/resumable.py
"""Resumable streams.

A stream is produced once and buffered in a store under its id, so any
number of readers can attach, replay what was already produced and follow
the rest live. Readers that attach after the producer finished get nothing.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Coroutine, Optional

from redis import asyncio as aioredis

from ..core.config import Settings

logger = logging.getLogger(__name__)

ACTIVE = "active"
DONE = "done"
FAILED = "failed"

Spawn = Callable[[Coroutine, Optional[str]], object]


class StreamContextUnavailable(Exception):
    """Raised when the backing store for resumable streams is not configured."""
    pass


class StreamAborted(Exception):
    """Raised to readers of a stream whose producer failed."""
    pass


class StreamStore(ABC):
    @abstractmethod
    async def create(self, stream_id: str) -> bool:
        """Mark ``stream_id`` active. Returns False if it already exists."""
        pass

    @abstractmethod
    async def state(self, stream_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def append(self, stream_id: str, chunk: str) -> None:
        pass

    @abstractmethod
    async def finish(self, stream_id: str, error: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def read(self, stream_id: str) -> AsyncIterator[str]:
        """Replay the stream from its first chunk and follow it to the end."""
        pass

    async def aclose(self) -> None:
        pass


@dataclass
class _MemoryEntry:
    state: str = ACTIVE
    chunks: list[str] = field(default_factory=list)
    error: Optional[str] = None
    finished_at: Optional[float] = None
    changed: asyncio.Condition = field(default_factory=asyncio.Condition)


class MemoryStreamStore(StreamStore):
    """In-process store; only resumable within a single worker."""

    def __init__(self, ttl_seconds: int = 24 * 60 * 60):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, _MemoryEntry] = {}

    def _prune(self) -> None:
        now = time.monotonic()
        expired = [
            stream_id for stream_id, entry in self._entries.items()
            if entry.finished_at is not None and now - entry.finished_at > self.ttl_seconds
        ]
        for stream_id in expired:
            del self._entries[stream_id]

    async def create(self, stream_id: str) -> bool:
        self._prune()
        if stream_id in self._entries:
            return False
        self._entries[stream_id] = _MemoryEntry()
        return True

    async def state(self, stream_id: str) -> Optional[str]:
        entry = self._entries.get(stream_id)
        return entry.state if entry else None

    async def append(self, stream_id: str, chunk: str) -> None:
        entry = self._entries[stream_id]
        async with entry.changed:
            entry.chunks.append(chunk)
            entry.changed.notify_all()

    async def finish(self, stream_id: str, error: Optional[str] = None) -> None:
        entry = self._entries[stream_id]
        async with entry.changed:
            entry.state = FAILED if error else DONE
            entry.error = error
            entry.finished_at = time.monotonic()
            entry.changed.notify_all()

    async def read(self, stream_id: str) -> AsyncIterator[str]:
        entry = self._entries.get(stream_id)
        if entry is None:
            return
        position = 0
        while True:
            async with entry.changed:
                await entry.changed.wait_for(lambda: position < len(entry.chunks) or entry.state != ACTIVE)
                chunks = entry.chunks[position:]
                state = entry.state
            for chunk in chunks:
                yield chunk
            position += len(chunks)
            if state != ACTIVE and position >= len(entry.chunks):
                if state == FAILED:
                    raise StreamAborted(entry.error)
                return


class RedisStreamStore(StreamStore):
    """Chunks live in a Redis stream, the state in a plain key; both expire."""

    def __init__(self, redis: aioredis.Redis, key_prefix: str, ttl_seconds: int, block_ms: int = 5000):
        self.redis = redis
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self.block_ms = block_ms

    def _state_key(self, stream_id: str) -> str:
        return f"{self.key_prefix}:state:{stream_id}"

    def _chunks_key(self, stream_id: str) -> str:
        return f"{self.key_prefix}:chunks:{stream_id}"

    async def create(self, stream_id: str) -> bool:
        created = await self.redis.set(self._state_key(stream_id), ACTIVE, nx=True, ex=self.ttl_seconds)
        return bool(created)

    async def state(self, stream_id: str) -> Optional[str]:
        return await self.redis.get(self._state_key(stream_id))

    async def append(self, stream_id: str, chunk: str) -> None:
        key = self._chunks_key(stream_id)
        await self.redis.xadd(key, {"data": chunk})
        await self.redis.expire(key, self.ttl_seconds)

    async def finish(self, stream_id: str, error: Optional[str] = None) -> None:
        key = self._chunks_key(stream_id)
        await self.redis.xadd(key, {"end": error or ""})
        await self.redis.expire(key, self.ttl_seconds)
        await self.redis.set(self._state_key(stream_id), FAILED if error else DONE, ex=self.ttl_seconds)

    async def read(self, stream_id: str) -> AsyncIterator[str]:
        key = self._chunks_key(stream_id)
        last_id = "0"
        while True:
            response = await self.redis.xread({key: last_id}, block=self.block_ms, count=100)
            if not response:
                # Nothing new within the block window; give up once the stream is gone
                if await self.state(stream_id) is None:
                    return
                continue
            for _, entries in response:
                for entry_id, fields in entries:
                    last_id = entry_id
                    if "end" in fields:
                        if fields["end"]:
                            raise StreamAborted(fields["end"])
                        return
                    yield fields["data"]

    async def aclose(self) -> None:
        await self.redis.aclose()


class ResumableStreamContext:
    def __init__(self, store: StreamStore, spawn: Spawn):
        self.store = store
        self._spawn = spawn

    async def _pump(self, stream_id: str, source: AsyncIterator[str]) -> None:
        try:
            async for chunk in source:
                await self.store.append(stream_id, chunk)
        except Exception as e:
            logger.error(f"Resumable stream {stream_id} failed: {str(e)}")
            await self.store.finish(stream_id, error=str(e) or type(e).__name__)
            return
        await self.store.finish(stream_id)

    async def resumable_stream(
            self,
            stream_id: str,
            make_stream: Callable[[], AsyncIterator[str]]
    ) -> Optional[AsyncIterator[str]]:
        """Start ``stream_id`` from ``make_stream`` or attach to it.

        Returns ``None`` when the stream already ran to completion.
        """
        if await self.store.create(stream_id):
            self._spawn(self._pump(stream_id, make_stream()), f"resumable-stream:{stream_id}")
            return self.store.read(stream_id)

        if await self.store.state(stream_id) != ACTIVE:
            return None
        return self.store.read(stream_id)

    async def resume_existing_stream(self, stream_id: str) -> Optional[AsyncIterator[str]]:
        if await self.store.state(stream_id) != ACTIVE:
            return None
        return self.store.read(stream_id)

    async def aclose(self) -> None:
        await self.store.aclose()


def create_stream_context(settings: Settings, spawn: Spawn) -> ResumableStreamContext:
    """Build the context for the configured backend.

    Raises ``StreamContextUnavailable`` when the backend cannot be used.
    """
    backend = settings.RESUMABLE_STREAM_BACKEND.lower()
    if backend == "memory":
        return ResumableStreamContext(MemoryStreamStore(settings.RESUMABLE_STREAM_TTL_SECONDS), spawn)
    if backend != "redis":
        raise StreamContextUnavailable(f"Unknown resumable stream backend: {backend}")
    if not settings.REDIS_URL:
        raise StreamContextUnavailable("REDIS_URL is not configured")

    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    store = RedisStreamStore(
        redis,
        key_prefix=settings.RESUMABLE_STREAM_KEY_PREFIX,
        ttl_seconds=settings.RESUMABLE_STREAM_TTL_SECONDS
    )
    return ResumableStreamContext(store, spawn)
