# tagask/db/collection_store.py
"""
Collection stores for the leaderboard and question history.

A collection is a JSON array of records, loaded and persisted as a whole. Every
read-modify-write runs inside the backend's exclusive critical section:

    async with store.locked():
        records = await store.load()
        ...
        await store.save(records)

load/save never lock on their own, so they must only be called inside locked().
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path
from typing import Any

from redis.exceptions import LockError, RedisError

from tagask.infrastructure.observability.logging import get_logger
from tagask.services.redis_client import FastRedisClient

logger = get_logger(__name__)


class CollectionStoreError(Exception):
    """Raised when a collection cannot be read, written or locked."""

    def __init__(self, message: str, collection: str = "unknown", operation: str = "unknown"):
        super().__init__(message)
        self.collection = collection
        self.operation = operation


class CollectionStore(ABC):
    """Load-all / save-all persistence with an explicit critical section."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def locked(self) -> AbstractAsyncContextManager[None]:
        """Async context manager holding the collection's exclusive lock."""

    @abstractmethod
    async def load(self) -> list[dict[str, Any]]:
        """Return every record; an absent collection is empty."""

    @abstractmethod
    async def save(self, records: list[dict[str, Any]]) -> None:
        """Replace the whole collection."""

    async def health_check(self) -> dict[str, Any]:
        try:
            records = await self.load()
            return {"healthy": True, "collection": self.name, "records": len(records)}
        except CollectionStoreError as e:
            return {"healthy": False, "collection": self.name, "error": str(e)}


class JsonFileCollectionStore(CollectionStore):
    """
    One indented JSON file per collection.

    The lock is an asyncio.Lock, so it serializes writers inside one process only.
    Use RedisCollectionStore when several workers share the data.
    """

    def __init__(self, name: str, path: str | Path):
        super().__init__(name)
        self.path = Path(path)
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def locked(self):
        async with self._lock:
            yield

    async def load(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read)

    async def save(self, records: list[dict[str, Any]]) -> None:
        await asyncio.to_thread(self._write, records)

    def _read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else []
        except (OSError, ValueError) as e:
            logger.error(
                "Failed to read collection",
                collection=self.name,
                path=str(self.path),
                error=str(e),
            )
            raise CollectionStoreError(
                f"Failed to read {self.name}: {e}", collection=self.name, operation="load"
            ) from e

        if not isinstance(data, list):
            raise CollectionStoreError(
                f"{self.name} is not a JSON array", collection=self.name, operation="load"
            )
        return data

    def _write(self, records: list[dict[str, Any]]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(records, indent=2, default=str), encoding="utf-8")
            # Readers see either the old or the new file, never a half-written one
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(
                "Failed to write collection",
                collection=self.name,
                path=str(self.path),
                error=str(e),
            )
            raise CollectionStoreError(
                f"Failed to write {self.name}: {e}", collection=self.name, operation="save"
            ) from e


class RedisCollectionStore(CollectionStore):
    """One Redis string key per collection, guarded by a Redis lock."""

    def __init__(
        self,
        name: str,
        redis_client: FastRedisClient,
        key_prefix: str = "tagask",
        lock_timeout: float = 10.0,
    ):
        super().__init__(name)
        self._redis = redis_client
        self.key = f"{key_prefix}:{name}"
        self.lock_key = f"{self.key}:lock"
        self.lock_timeout = lock_timeout

    @asynccontextmanager
    async def locked(self):
        try:
            lock = await self._redis.lock(
                self.lock_key, timeout=self.lock_timeout, blocking_timeout=self.lock_timeout
            )
            acquired = await lock.acquire()
        except (RedisError, ConnectionError, RuntimeError) as e:
            raise CollectionStoreError(
                f"Failed to lock {self.name}: {e}", collection=self.name, operation="lock"
            ) from e

        if not acquired:
            raise CollectionStoreError(
                f"Timed out waiting for {self.name} lock", collection=self.name, operation="lock"
            )

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Lock expired while held; the write already happened
                logger.warning("Collection lock released late", collection=self.name, error=str(e))

    async def load(self) -> list[dict[str, Any]]:
        try:
            raw = await self._redis.get(self.key)
        except (RedisError, ConnectionError, RuntimeError) as e:
            raise CollectionStoreError(
                f"Failed to read {self.name}: {e}", collection=self.name, operation="load"
            ) from e

        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise CollectionStoreError(
                f"{self.name} holds invalid JSON: {e}", collection=self.name, operation="load"
            ) from e
        if not isinstance(data, list):
            raise CollectionStoreError(
                f"{self.name} is not a JSON array", collection=self.name, operation="load"
            )
        return data

    async def save(self, records: list[dict[str, Any]]) -> None:
        try:
            await self._redis.set(self.key, json.dumps(records, default=str))
        except (RedisError, ConnectionError, RuntimeError) as e:
            raise CollectionStoreError(
                f"Failed to write {self.name}: {e}", collection=self.name, operation="save"
            ) from e
