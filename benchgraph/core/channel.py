"""Closable single-consumer async stream used to connect pipeline stages."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, Iterable, List, TypeVar

T = TypeVar("T")

_CLOSED = object()


class Channel(Generic[T]):
    """An unbounded FIFO that producers close once they are done.

    Iterating a channel yields items until it is closed and drained. Putting
    into a closed channel is a programming error.
    """

    def __init__(self, name: str = "channel"):
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @classmethod
    def of(cls, items: Iterable[T], name: str = "channel") -> "Channel[T]":
        channel: Channel[T] = cls(name)
        for item in items:
            channel.put_nowait(item)
        channel.close()
        return channel

    @property
    def closed(self) -> bool:
        return self._closed

    def put_nowait(self, item: T) -> None:
        if self._closed:
            raise RuntimeError(f"Channel '{self.name}' is closed")
        self._queue.put_nowait(item)

    async def put(self, item: T) -> None:
        self.put_nowait(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def get(self) -> T:
        """Return the next item; raises ``StopAsyncIteration`` once drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the marker for any later reader
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        return await self.get()

    async def collect(self) -> List[T]:
        return [item async for item in self]
