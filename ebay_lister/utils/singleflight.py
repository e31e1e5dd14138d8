"""Collapse concurrent calls for the same key into a single in-flight task."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Run at most one coroutine per key; concurrent callers share its result.

    Failures propagate to every waiter. The key is released once the call
    settles, so the next caller starts a fresh attempt.
    """

    def __init__(self) -> None:
        self._inflight: Dict[Hashable, asyncio.Future[T]] = {}

    def in_flight(self, key: Hashable | None = None) -> bool:
        if key is None:
            return bool(self._inflight)
        return key in self._inflight

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        existing = self._inflight.get(key)
        if existing is not None:
            return await asyncio.shield(existing)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unobserved failure does not warn at GC.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)


__all__ = ["SingleFlight"]
