"""Join/combine engine: equi-joins between independently produced streams."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import (
    AsyncIterable,
    AsyncIterator,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterable,
    List,
    Tuple,
    TypeVar,
)

from benchgraph.core.channel import Channel

logger = logging.getLogger("benchgraph.combine")

L = TypeVar("L")
R = TypeVar("R")
KeyFn = Callable[[object], Hashable]


def task_key(record: object) -> Hashable:
    """Join key used at both combination points: the record's task name."""
    return getattr(record, "task")


def combine(
    left: Iterable[L],
    right: Iterable[R],
    key_left: KeyFn = task_key,
    key_right: KeyFn = task_key,
) -> List[Tuple[L, R]]:
    """Cartesian product of left and right records sharing a key.

    Output is grouped by key in order of first appearance on the left, then
    by left order, then by right order.
    """
    right_groups: Dict[Hashable, List[R]] = defaultdict(list)
    for item in right:
        right_groups[key_right(item)].append(item)

    left_groups: Dict[Hashable, List[L]] = defaultdict(list)
    for item in left:
        left_groups[key_left(item)].append(item)

    pairs: List[Tuple[L, R]] = []
    for key, lefts in left_groups.items():
        partners = right_groups.get(key, [])
        for left_item in lefts:
            for right_item in partners:
                pairs.append((left_item, right_item))
    return pairs


class KeyedJoin(Generic[L, R]):
    """Streaming equi-join buffer.

    Every arriving item is matched against the items already buffered on the
    other side and then buffered itself, so each (left, right) pair sharing a
    key is emitted exactly once, by whichever of the two arrived last. Matching
    and buffering happen under one lock, so a pair is never emitted twice or
    half-built even when both sides insert concurrently.

    Once one side is closed the other side no longer needs to buffer, and the
    closed side's buffer is dropped as soon as its partner side closes.
    """

    def __init__(self, key_left: KeyFn = task_key, key_right: KeyFn = task_key, name: str = "join"):
        self.name = name
        self._key_left = key_left
        self._key_right = key_right
        self._left: Dict[Hashable, List[L]] = defaultdict(list)
        self._right: Dict[Hashable, List[R]] = defaultdict(list)
        self._left_closed = False
        self._right_closed = False
        self._emitted = 0
        self._lock = threading.Lock()

    @property
    def emitted(self) -> int:
        return self._emitted

    def buffered(self) -> Tuple[int, int]:
        with self._lock:
            return (
                sum(len(v) for v in self._left.values()),
                sum(len(v) for v in self._right.values()),
            )

    def add_left(self, item: L) -> List[Tuple[L, R]]:
        key = self._key_left(item)
        with self._lock:
            if self._left_closed:
                raise RuntimeError(f"{self.name}: left side already closed")
            partners = list(self._right.get(key, ()))
            if not self._right_closed:
                self._left[key].append(item)
            self._emitted += len(partners)
        return [(item, partner) for partner in partners]

    def add_right(self, item: R) -> List[Tuple[L, R]]:
        key = self._key_right(item)
        with self._lock:
            if self._right_closed:
                raise RuntimeError(f"{self.name}: right side already closed")
            partners = list(self._left.get(key, ()))
            if not self._left_closed:
                self._right[key].append(item)
            self._emitted += len(partners)
        return [(partner, item) for partner in partners]

    def close_left(self) -> None:
        with self._lock:
            self._left_closed = True
            self._right.clear()

    def close_right(self) -> None:
        with self._lock:
            self._right_closed = True
            self._left.clear()

    @property
    def closed(self) -> bool:
        return self._left_closed and self._right_closed


async def combine_streams(
    left: AsyncIterable[L],
    right: AsyncIterable[R],
    key_left: KeyFn = task_key,
    key_right: KeyFn = task_key,
    name: str = "join",
) -> AsyncIterator[Tuple[L, R]]:
    """Yield joined pairs as soon as both partners have arrived.

    Both inputs are drained concurrently. The generator finishes once both
    inputs are exhausted; an error in either input is re-raised here.
    """
    join: KeyedJoin[L, R] = KeyedJoin(key_left, key_right, name=name)
    out: Channel[Tuple[L, R]] = Channel(name)

    async def _pump(source, add, close) -> None:
        try:
            async for item in source:
                for pair in add(item):
                    out.put_nowait(pair)
        finally:
            close()

    pumps = asyncio.gather(
        _pump(left, join.add_left, join.close_left),
        _pump(right, join.add_right, join.close_right),
    )

    async def _finish() -> None:
        try:
            await pumps
        finally:
            out.close()

    finisher = asyncio.ensure_future(_finish())
    try:
        async for pair in out:
            yield pair
        await finisher
        logger.debug(f"{name}: emitted {join.emitted} pair(s)")
    finally:
        if not finisher.done():
            finisher.cancel()
            pumps.cancel()
