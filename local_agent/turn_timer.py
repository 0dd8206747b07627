from __future__ import annotations

import asyncio
from typing import Callable, Optional


class TurnTimer:
    """
    Single silence debounce timer.

    arm() supersedes any pending timer. Each arm gets a generation number and
    a fire whose generation is stale does nothing, so a callback that was
    already dequeued by the loop when cancel() ran is still a no-op.
    """

    def __init__(self, delay_ms: int, on_fire: Callable[[], None]):
        self.delay_ms = delay_ms
        self._on_fire = on_fire
        self._handle: Optional[asyncio.TimerHandle] = None
        self._generation = 0

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        generation = self._generation
        self._handle = loop.call_later(self.delay_ms / 1000.0, self._fire, generation)

    def cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self._on_fire()
