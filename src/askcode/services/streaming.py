from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable, Iterator, Optional, TypeVar


logger = logging.getLogger("askcode.stream")

T = TypeVar("T")

_SENTINEL = object()


async def iter_in_thread(it: Iterable[T]) -> AsyncIterator[T]:
    """Drive a blocking iterator from a worker thread, one item at a time."""

    iterator: Iterator[T] = iter(it)
    pending: "Optional[asyncio.Future[Any]]" = None
    try:
        while True:
            pending = asyncio.ensure_future(asyncio.to_thread(next, iterator, _SENTINEL))
            # A cancelled read keeps running in its worker; close waits for it
            item = await asyncio.shield(pending)
            pending = None
            if item is _SENTINEL:
                return
            yield item  # type: ignore[misc]
    finally:
        if pending is not None:
            await asyncio.wait([pending])
            if not pending.cancelled():
                pending.exception()
        close = getattr(iterator, "close", None)
        if callable(close):
            await asyncio.to_thread(close)


DELTA = "delta"
DONE = "done"
ERROR = "error"
RECORDED = "recorded"
UNRECORDED = "unrecorded"

FINAL_EVENTS = frozenset({ERROR, RECORDED, UNRECORDED})


@dataclass(frozen=True)
class ChannelEvent:
    kind: str
    data: Any = None


class AnswerChannel:
    """Single-writer, ordered output channel for one streamed answer.

    The producer calls ``update`` for every fragment, then exactly one of
    ``done`` or ``fail``; after ``done`` it reports the persistence outcome
    with ``recorded`` or ``unrecorded``. Consumers read ``events()`` or
    ``fragments()``.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[ChannelEvent]" = asyncio.Queue()
        self.status = "streaming"
        self.error: Optional[BaseException] = None
        self.turn: Any = None
        self.abandoned = False
        self._final = False

    def update(self, text: str) -> bool:
        if self.status != "streaming":
            raise RuntimeError(f"channel is {self.status}")
        if self.abandoned:
            return False
        self._queue.put_nowait(ChannelEvent(DELTA, text))
        return True

    def done(self) -> None:
        self._transition("streaming", "completed")
        self._queue.put_nowait(ChannelEvent(DONE))

    def fail(self, exc: BaseException) -> None:
        self._transition("streaming", "failed")
        self.error = exc
        self._queue.put_nowait(ChannelEvent(ERROR, exc))

    def recorded(self, turn: Any) -> None:
        self._transition("completed", "recorded")
        self.turn = turn
        self._queue.put_nowait(ChannelEvent(RECORDED, turn))

    def unrecorded(self, exc: BaseException) -> None:
        self._transition("completed", "unrecorded")
        self.error = exc
        self._queue.put_nowait(ChannelEvent(UNRECORDED, exc))

    def abandon(self) -> None:
        if self.status == "streaming" and not self.abandoned:
            self.abandoned = True
            logger.info("answer_channel_abandoned")

    @property
    def closed(self) -> bool:
        return self.status in ("failed", "recorded", "unrecorded")

    def _transition(self, expected: str, target: str) -> None:
        if self.status != expected:
            raise RuntimeError(f"cannot move channel from {self.status} to {target}")
        self.status = target

    async def events(self) -> AsyncIterator[ChannelEvent]:
        try:
            while True:
                event = await self._queue.get()
                if event.kind in FINAL_EVENTS:
                    self._final = True
                yield event
                if self._final:
                    return
        finally:
            self.abandon()

    async def fragments(self) -> AsyncIterator[str]:
        """Yield text fragments until the stream completes or fails."""

        events = self.events()
        try:
            async for event in events:
                if event.kind == DELTA:
                    yield event.data
                elif event.kind in (DONE, ERROR):
                    return
        finally:
            await events.aclose()

    async def collect(self) -> str:
        """Drain every event and return the delivered text."""

        parts = []
        async for event in self.events():
            if event.kind == DELTA:
                parts.append(event.data)
        return "".join(parts)
