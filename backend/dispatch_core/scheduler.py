from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

LOGGER = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    def __init__(self, label: str = "") -> None:
        self.label = label
        self._cancelled = False
        self._finished = False
        self._cancel_hooks: list[Callback] = []

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._finished

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self.active:
            return
        self._cancelled = True
        for hook in self._cancel_hooks:
            hook()
        self._cancel_hooks.clear()

    def _finish(self) -> None:
        self._finished = True
        self._cancel_hooks.clear()


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callback, label: str = "") -> TimerHandle: ...

    def call_every(self, interval: float, callback: Callback, label: str = "") -> TimerHandle: ...

    def pending_count(self) -> int: ...


@dataclass(order=True)
class _Scheduled:
    when: float
    seq: int
    callback: Callback = field(compare=False)
    handle: TimerHandle = field(compare=False)
    interval: float | None = field(default=None, compare=False)


class ManualScheduler:
    """Virtual-clock scheduler: nothing runs until ``advance`` moves time forward.

    Callbacks fire in (time, insertion) order; callbacks scheduled while
    advancing run in the same call if they fall due before the target time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[_Scheduled] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback, label: str = "") -> TimerHandle:
        handle = TimerHandle(label)
        self._push(self._now + max(0.0, delay), callback, handle, None)
        return handle

    def call_every(self, interval: float, callback: Callback, label: str = "") -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        handle = TimerHandle(label)
        self._push(self._now + interval, callback, handle, interval)
        return handle

    def pending_count(self) -> int:
        return len({id(item.handle) for item in self._queue if item.handle.active})

    def advance(self, seconds: float) -> int:
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0].when <= target:
            item = heapq.heappop(self._queue)
            if not item.handle.active:
                continue
            self._now = item.when
            if item.interval is not None:
                self._push(item.when + item.interval, item.callback, item.handle, item.interval)
            else:
                item.handle._finish()
            item.callback()
            fired += 1
        self._now = target
        return fired

    def _push(self, when: float, callback: Callback, handle: TimerHandle, interval: float | None) -> None:
        heapq.heappush(
            self._queue,
            _Scheduled(when=when, seq=next(self._seq), callback=callback, handle=handle, interval=interval),
        )


class AsyncioScheduler:
    """Timer source backed by the running asyncio loop (single-threaded)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._live: set[TimerHandle] = set()

    def now(self) -> float:
        return time.monotonic()

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callback, label: str = "") -> TimerHandle:
        handle = TimerHandle(label)

        def _fire() -> None:
            self._live.discard(handle)
            if not handle.active:
                return
            handle._finish()
            callback()

        native = self._event_loop().call_later(max(0.0, delay), _fire)
        self._track(handle, native)
        return handle

    def call_every(self, interval: float, callback: Callback, label: str = "") -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        handle = TimerHandle(label)
        loop = self._event_loop()
        state: dict[str, asyncio.TimerHandle] = {}

        def _fire() -> None:
            if not handle.active:
                return
            state["native"] = loop.call_later(interval, _fire)
            callback()

        state["native"] = loop.call_later(interval, _fire)
        self._live.add(handle)
        handle._cancel_hooks.append(lambda: state["native"].cancel())
        handle._cancel_hooks.append(lambda: self._live.discard(handle))
        return handle

    def pending_count(self) -> int:
        return sum(1 for handle in self._live if handle.active)

    def _track(self, handle: TimerHandle, native: asyncio.TimerHandle) -> None:
        self._live.add(handle)
        handle._cancel_hooks.append(native.cancel)
        handle._cancel_hooks.append(lambda: self._live.discard(handle))


class TimerGroup:
    """Timers owned by one session.

    Every callback is wrapped in the session guard so a late callback from a
    reset session is dropped instead of mutating state.
    """

    def __init__(self, scheduler: Scheduler, guard: Callable[[], bool]) -> None:
        self._scheduler = scheduler
        self._guard = guard
        self._handles: dict[str, list[TimerHandle]] = {}

    def after(self, delay: float, callback: Callback, *, tag: str) -> TimerHandle:
        handle = self._scheduler.call_later(delay, self._guarded(callback, tag), label=tag)
        self._keep(tag, handle)
        return handle

    def every(self, interval: float, callback: Callback, *, tag: str) -> TimerHandle:
        handle = self._scheduler.call_every(interval, self._guarded(callback, tag), label=tag)
        self._keep(tag, handle)
        return handle

    def active(self, tag: str) -> bool:
        return any(handle.active for handle in self._handles.get(tag, []))

    def active_count(self) -> int:
        return sum(1 for handles in self._handles.values() for handle in handles if handle.active)

    def cancel(self, tag: str) -> int:
        cancelled = 0
        for handle in self._handles.pop(tag, []):
            if handle.active:
                handle.cancel()
                cancelled += 1
        return cancelled

    def cancel_all(self) -> int:
        return sum(self.cancel(tag) for tag in list(self._handles))

    def _keep(self, tag: str, handle: TimerHandle) -> None:
        live = [existing for existing in self._handles.get(tag, []) if existing.active]
        live.append(handle)
        self._handles[tag] = live

    def _guarded(self, callback: Callback, tag: str) -> Callback:
        def _run() -> None:
            if not self._guard():
                LOGGER.debug("Dropping stale %s callback", tag)
                return
            callback()

        return _run
