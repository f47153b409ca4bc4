"""Execution backend interface and shared resolution cache."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ResolutionCache(Generic[K, V]):
    """Monotonic memo for facts about the execution environment.

    Entries are only ever added. Concurrent lookups of the same missing key
    wait on a per-key lock, so the resolver runs once per key. A resolver that
    raises leaves the key unset.
    """

    def __init__(self) -> None:
        self._values: dict[K, V] = {}
        self._locks: dict[K, asyncio.Lock] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, key: K) -> Optional[V]:
        return self._values.get(key)

    async def get_or_resolve(self, key: K, resolver: Callable[[], Awaitable[V]]) -> V:
        if key in self._values:
            return self._values[key]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key in self._values:
                return self._values[key]
            value = await resolver()
            self._values[key] = value
            return value


class ExecutionBackend(ABC):
    """Runs rendered commands against an existing execution target.

    All backends (container, ssh) implement execute; identity resolution and
    target validation default to pass-through.
    """

    @abstractmethod
    async def execute(
        self,
        target: str,
        command: str,
        user: Optional[str] = None,
        shell: Optional[str] = None,
        working_dir: Optional[str] = None,
    ) -> str:
        """Execute `command` on `target` and return its stdout.

        Raises:
            ExecutionError: the command failed, timed out or produced too much output.
        """
        ...

    async def resolve_user(self, user: Optional[str], target: str) -> Optional[str]:
        """Map a configured user setting to the identity the command runs as."""
        return user

    async def validate_target(self, target: str, project: str) -> None:
        """Check that `target` belongs to `project`. No-op by default."""
        return None
