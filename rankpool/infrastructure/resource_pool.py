"""
Bounded resource pools for the ranking pipeline.

A pool hands out `PoolHandle` tokens, each granting exclusive use of one pooled
connection until it is released. Capacity is fixed at construction; callers
beyond it wait up to their timeout and then fail with `PoolExhausted`.

`AbstractResourcePool` owns the handle bookkeeping (in-use count, peak, issued
handles, exhaustion count) under a single lock. Subclasses only decide how a
connection is checked out and checked back in:

- `ResourcePool` keeps connections in-process, created lazily from a factory.
- `rankpool.infrastructure.db_factory.PostgresPool` delegates to psycopg_pool.

Usage:
    pool = ResourcePool(capacity=2, acquire_timeout=0.5, factory=object)
    with pool.lease() as handle:
        use(handle.connection)
"""

from __future__ import annotations

import abc
import itertools
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, List, Optional

from rankpool.errors import PoolExhausted
from rankpool.utils.logging import get_logger

log = get_logger(__name__)

_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class PoolHandle:
    """
    Ownership token for one pooled connection.
    """

    handle_id: int
    pool_name: str
    connection: Any = field(repr=False, compare=False)
    acquired_at: float = field(default_factory=time.perf_counter, compare=False)


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time view of a pool's counters."""

    name: str
    capacity: int
    in_use: int
    peak_in_use: int
    exhausted_count: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "capacity": self.capacity,
            "inUse": self.in_use,
            "peakInUse": self.peak_in_use,
            "exhaustedCount": self.exhausted_count,
        }


class AbstractResourcePool(abc.ABC):
    """
    Handle bookkeeping shared by every pool implementation.

    Subclasses implement `_checkout` (block up to `timeout`, return a connection
    or raise `PoolExhausted`), `_checkin` and `close`.
    """

    def __init__(self, capacity: int, acquire_timeout: float, name: str = "pool") -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if acquire_timeout < 0:
            raise ValueError(f"acquire_timeout must be >= 0, got {acquire_timeout}")
        self.name = name
        self._capacity = capacity
        self.acquire_timeout = acquire_timeout
        self._stats_lock = threading.Lock()
        self._issued: Dict[int, PoolHandle] = {}
        self._peak_in_use = 0
        self._exhausted_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        with self._stats_lock:
            return len(self._issued)

    def stats(self) -> PoolStats:
        with self._stats_lock:
            return PoolStats(
                name=self.name,
                capacity=self._capacity,
                in_use=len(self._issued),
                peak_in_use=self._peak_in_use,
                exhausted_count=self._exhausted_count,
            )

    def acquire(self, timeout: Optional[float] = None) -> PoolHandle:
        """
        Acquire exclusive use of one connection.

        Parameters
        ----------
        timeout : float | None
            Seconds to wait for a free slot. Defaults to the pool's acquire_timeout.

        Raises
        ------
        PoolExhausted
            If no connection became free within the timeout.
        """
        wait = self.acquire_timeout if timeout is None else timeout
        try:
            connection = self._checkout(wait)
        except PoolExhausted:
            with self._stats_lock:
                self._exhausted_count += 1
            log.warning(
                f"[POOL EXHAUSTED] {self.name}",
                extra={"pool": self.name, "capacity": self._capacity, "timeout": wait},
            )
            raise

        handle = PoolHandle(handle_id=next(_handle_ids), pool_name=self.name, connection=connection)
        with self._stats_lock:
            self._issued[handle.handle_id] = handle
            self._peak_in_use = max(self._peak_in_use, len(self._issued))
        return handle

    def release(self, handle: PoolHandle) -> None:
        """
        Return a handle's connection to the pool.

        Raises
        ------
        ValueError
            If the handle was not issued by this pool or was already released.
        """
        with self._stats_lock:
            issued = self._issued.pop(handle.handle_id, None)
        if issued is None:
            raise ValueError(f"handle {handle.handle_id} is not held from pool '{self.name}'")
        self._checkin(issued.connection)

    @contextmanager
    def lease(self, timeout: Optional[float] = None) -> Generator[PoolHandle, None, None]:
        """Acquire a handle for the duration of the block; release on every exit path."""
        handle = self.acquire(timeout)
        try:
            yield handle
        finally:
            self.release(handle)

    def _exhausted(self, timeout: float) -> PoolExhausted:
        return PoolExhausted(self.name, self._capacity, timeout)

    @abc.abstractmethod
    def _checkout(self, timeout: float) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def _checkin(self, connection: Any) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def __enter__(self) -> "AbstractResourcePool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ResourcePool(AbstractResourcePool):
    """
    In-process bounded pool over a connection factory.

    Connections are created lazily, up to `capacity`, and reused once released
    (most recently released first). Waiters are woken in no particular order.
    """

    def __init__(
        self,
        capacity: int,
        acquire_timeout: float,
        factory: Callable[[], Any] = object,
        name: str = "memory-pool",
        closer: Optional[Callable[[Any], None]] = None,
    ) -> None:
        super().__init__(capacity=capacity, acquire_timeout=acquire_timeout, name=name)
        self._factory = factory
        self._closer = closer
        self._cond = threading.Condition()
        self._idle: List[Any] = []
        self._created = 0
        self._closed = False

    def _checkout(self, timeout: float) -> Any:
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                if self._closed:
                    raise RuntimeError(f"pool '{self.name}' is closed")
                if self._idle:
                    return self._idle.pop()
                if self._created < self.capacity:
                    # Reserve the slot before leaving the lock to build the connection.
                    self._created += 1
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise self._exhausted(timeout)
                self._cond.wait(remaining)

        try:
            return self._factory()
        except BaseException:
            with self._cond:
                self._created -= 1
                self._cond.notify()
            raise

    def _checkin(self, connection: Any) -> None:
        with self._cond:
            if self._closed:
                self._close_connection(connection)
            else:
                self._idle.append(connection)
            self._cond.notify()

    def _close_connection(self, connection: Any) -> None:
        if self._closer is not None:
            self._closer(connection)

    def close(self) -> None:
        """Close idle connections; connections still leased are closed on release."""
        with self._cond:
            self._closed = True
            idle, self._idle = self._idle, []
            self._cond.notify_all()
        for connection in idle:
            self._close_connection(connection)


__all__ = ["AbstractResourcePool", "PoolHandle", "PoolStats", "ResourcePool"]
