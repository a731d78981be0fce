"""
Shared record queue: durable, append-only lists addressed by name.

All access goes through the abstract RecordQueue interface so the Redis
backend can be swapped for the in-process one (single-process simulations,
tests). Payloads are opaque bytes; the protocol layer owns their format.

Reads are half-open: read_range(name, start, stop) returns items
[start, stop). take_snapshot() fixes the length first and then reads exactly
that range, so publishers appending concurrently cannot cause a torn or
unbounded read.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

import redis

from backend_secagg.core.exceptions import QueueTransportError
from backend_secagg.secagg_logging import get_logger

logger = get_logger(__name__)

MEMORY_URL_SCHEME = "memory://"


class RecordQueue(ABC):
    """Abstract interface for the shared lists; implement for Redis or in-process."""

    @abstractmethod
    def append(self, name: str, payload: bytes) -> int:
        """Append one payload. Returns the new list length."""
        ...

    @abstractmethod
    def append_many(self, name: str, payloads: Sequence[bytes]) -> int:
        """Append all payloads atomically, in order. Returns the new list length."""
        ...

    @abstractmethod
    def length(self, name: str) -> int:
        """Return the number of items currently in the list (0 if absent)."""
        ...

    @abstractmethod
    def read_range(self, name: str, start: int, stop: int) -> list[bytes]:
        """Return items [start, stop) without removing them."""
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove the list entirely."""
        ...

    @abstractmethod
    def replace(self, name: str, payloads: Sequence[bytes]) -> None:
        """Atomically delete the list and append payloads."""
        ...

    def close(self) -> None:
        """Release connections. Default: nothing to release."""


class RedisQueue(RecordQueue):
    """Redis lists (RPUSH / LLEN / LRANGE / DEL). Every Redis error becomes QueueTransportError."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisQueue":
        return cls(redis.Redis.from_url(url))

    @contextmanager
    def _transport(self, op: str, name: str) -> Iterator[None]:
        try:
            yield
        except redis.exceptions.RedisError as exc:
            logger.error("queue_transport_failed", op=op, queue=name, error=str(exc))
            raise QueueTransportError(f"queue {op} failed on {name!r}: {exc}", op=op, queue=name) from exc

    def append(self, name: str, payload: bytes) -> int:
        with self._transport("append", name):
            return int(self._client.rpush(name, payload))

    def append_many(self, name: str, payloads: Sequence[bytes]) -> int:
        if not payloads:
            return self.length(name)
        # A single multi-value RPUSH is applied atomically by Redis.
        with self._transport("append_many", name):
            return int(self._client.rpush(name, *payloads))

    def length(self, name: str) -> int:
        with self._transport("length", name):
            return int(self._client.llen(name))

    def read_range(self, name: str, start: int, stop: int) -> list[bytes]:
        if stop <= start:
            return []
        with self._transport("read_range", name):
            return list(self._client.lrange(name, start, stop - 1))

    def delete(self, name: str) -> None:
        with self._transport("delete", name):
            self._client.delete(name)

    def replace(self, name: str, payloads: Sequence[bytes]) -> None:
        with self._transport("replace", name):
            with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(name)
                if payloads:
                    pipe.rpush(name, *payloads)
                pipe.execute()

    def close(self) -> None:
        self._client.close()


class InMemoryQueue(RecordQueue):
    """Process-local lists guarded by a lock; shared between threads of one process."""

    def __init__(self) -> None:
        self._lists: dict[str, list[bytes]] = {}
        self._lock = threading.Lock()

    def append(self, name: str, payload: bytes) -> int:
        with self._lock:
            items = self._lists.setdefault(name, [])
            items.append(bytes(payload))
            return len(items)

    def append_many(self, name: str, payloads: Sequence[bytes]) -> int:
        with self._lock:
            items = self._lists.setdefault(name, [])
            items.extend(bytes(p) for p in payloads)
            return len(items)

    def length(self, name: str) -> int:
        with self._lock:
            return len(self._lists.get(name, []))

    def read_range(self, name: str, start: int, stop: int) -> list[bytes]:
        with self._lock:
            return list(self._lists.get(name, [])[start:stop])

    def delete(self, name: str) -> None:
        with self._lock:
            self._lists.pop(name, None)

    def replace(self, name: str, payloads: Sequence[bytes]) -> None:
        with self._lock:
            if payloads:
                self._lists[name] = [bytes(p) for p in payloads]
            else:
                self._lists.pop(name, None)


@dataclass(frozen=True)
class QueueSnapshot:
    """Immutable view of a queue's first `length` items at snapshot time."""

    name: str
    length: int
    items: tuple[bytes, ...]


def take_snapshot(queue: RecordQueue, name: str) -> QueueSnapshot:
    """
    Fix the queue's current length, then read exactly that range.

    Raises QueueTransportError if fewer items come back than the length
    promised (the list was deleted or trimmed between the two calls).
    """
    length = queue.length(name)
    items = queue.read_range(name, 0, length) if length else []
    if len(items) != length:
        raise QueueTransportError(
            f"torn read on {name!r}: expected {length} items, got {len(items)}",
            queue=name,
        )
    logger.debug("queue_snapshot_taken", queue=name, length=length)
    return QueueSnapshot(name=name, length=length, items=tuple(items))


def get_queue(url: str) -> RecordQueue:
    """
    Return a RecordQueue for url.

    memory:// gives a fresh in-process queue; anything else is passed to
    redis.Redis.from_url (redis://, rediss://, unix://).
    """
    if url.startswith(MEMORY_URL_SCHEME):
        return InMemoryQueue()
    try:
        return RedisQueue.from_url(url)
    except ValueError as exc:
        raise QueueTransportError(f"invalid queue URL: {exc}", url=url) from exc
