"""Work queue collaborator.

Requests are JSON SearchRequest payloads on a Redis list: producers LPUSH,
workers RPOP, so the list behaves as a FIFO. Popping never blocks; an empty
queue is reported as None and the worker loop decides how long to wait.
"""
from __future__ import annotations

import json
import logging
from collections import deque
from typing import Deque, Iterable, Optional, Protocol

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from harvest.core.errors import InvalidRequest, QueueUnavailable
from harvest.core.models import SearchRequest

LOGGER = logging.getLogger(__name__)


def decode_request(payload) -> SearchRequest:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    try:
        data = json.loads(payload) if isinstance(payload, str) else payload
        if not isinstance(data, dict):
            raise InvalidRequest(f"expected a JSON object, got {type(data).__name__}")
        return SearchRequest.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise InvalidRequest(f"bad queue payload {payload!r:.200}: {e}") from e


class WorkQueue(Protocol):
    async def connect(self) -> None: ...
    async def pop(self) -> Optional[str]: ...
    async def push(self, request: SearchRequest) -> None: ...
    async def size(self) -> int: ...
    async def close(self) -> None: ...


class RedisWorkQueue:
    def __init__(self, url: str, key: str = "link-request-queue"):
        self.url = url
        self.key = key
        self._client: Optional[aioredis.Redis] = None

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise QueueUnavailable("queue not connected; call connect() first")
        return self._client

    async def connect(self) -> None:
        client = aioredis.from_url(self.url, decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            await client.aclose()
            raise QueueUnavailable(f"work queue unreachable at {self.url}: {e}") from e
        self._client = client
        LOGGER.info("queue connected key=%s", self.key)

    async def pop(self) -> Optional[str]:
        try:
            return await self.client.rpop(self.key)
        except (RedisError, OSError) as e:
            raise QueueUnavailable(f"pop from {self.key} failed: {e}") from e

    async def push(self, request: SearchRequest) -> None:
        await self.client.lpush(self.key, request.to_payload())

    async def size(self) -> int:
        return int(await self.client.llen(self.key))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class MemoryWorkQueue:
    """In-process FIFO with the same interface, for one-shot runs and tests."""

    def __init__(self, items: Iterable[SearchRequest] = ()):
        self._items: Deque[str] = deque()
        for item in items:
            self._items.append(item.to_payload())

    async def connect(self) -> None:
        return None

    async def pop(self) -> Optional[str]:
        return self._items.popleft() if self._items else None

    async def push(self, request: SearchRequest) -> None:
        self._items.append(request.to_payload())

    async def push_raw(self, payload: str) -> None:
        self._items.append(payload)

    async def size(self) -> int:
        return len(self._items)

    async def close(self) -> None:
        return None
