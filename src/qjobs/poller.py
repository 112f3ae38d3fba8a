from __future__ import annotations

import asyncio
from enum import Enum
from time import monotonic
from typing import Awaitable, Callable

from qjobs.config import MIN_POLL_SECONDS


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


class PollScheduler:
    """Runs ``tick`` every ``interval_seconds`` until stopped.

    Each cycle sleeps first and then awaits the tick, so ticks from one
    scheduler never overlap. ``stop()`` prevents future ticks but lets a tick
    that is already running finish.
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[object]],
        *,
        min_interval_seconds: float = MIN_POLL_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._tick = tick
        self._min_interval_seconds = min_interval_seconds
        self._sleep = sleep
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._interval_seconds: float | None = None
        self.last_tick_at: float | None = None

    @property
    def state(self) -> PollState:
        return PollState.POLLING if self._task is not None else PollState.IDLE

    @property
    def interval_seconds(self) -> float | None:
        return self._interval_seconds

    def clamp(self, interval_seconds: float) -> float:
        return max(self._min_interval_seconds, float(interval_seconds))

    def start(self, interval_seconds: float) -> float:
        if self._task is not None:
            raise RuntimeError("scheduler is already polling; use restart()")

        effective = self.clamp(interval_seconds)
        self._interval_seconds = effective
        self._task = asyncio.get_running_loop().create_task(self._run(effective))
        print(f"[poller] started interval={effective:.1f}s", flush=True)
        return effective

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        print("[poller] stopped", flush=True)

    def restart(self, interval_seconds: float) -> float:
        self.stop()
        return self.start(interval_seconds)

    async def _run_tick(self) -> None:
        self.last_tick_at = self._clock()
        try:
            await self._tick()
        except Exception as exc:
            print(f"[poller] tick failed error={exc!r}", flush=True)

    async def _run(self, interval_seconds: float) -> None:
        while True:
            await self._sleep(interval_seconds)
            inner = asyncio.ensure_future(self._run_tick())
            self._inflight.add(inner)
            inner.add_done_callback(self._inflight.discard)
            await asyncio.shield(inner)
