from __future__ import annotations

import asyncio
from typing import Callable, Optional

from .capabilities import SpeechSynthesis


class SpeakingMonitor:
    """
    Polls `synthesis.speaking` on a fixed interval and reports edges only.
    `on_quiet`, when given, is called on every tick that reads not-speaking
    without an edge, so a caller can notice playback that started and
    finished between two polls.

    Usage:
        monitor = SpeakingMonitor(synthesis, 500, on_change)
        monitor.start()   # inside a running loop
        monitor.stop()    # no tick runs after this returns

    Notes:
      - `last` starts False, so a platform that is silent at start produces
        no event until it actually begins speaking.
      - The poll reschedules itself with loop.call_later; there is only ever
        one outstanding handle.
    """

    def __init__(
        self,
        synthesis: SpeechSynthesis,
        interval_ms: int,
        on_change: Callable[[bool], None],
        on_quiet: Optional[Callable[[], None]] = None,
    ):
        self.synthesis = synthesis
        self.interval_ms = interval_ms
        self._on_change = on_change
        self._on_quiet = on_quiet
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running = False
        self.last = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._schedule()

    def stop(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval_ms / 1000.0, self._tick)

    def _tick(self) -> None:
        if not self._running:
            return
        self._handle = None
        current = bool(self.synthesis.speaking)
        if current != self.last:
            self.last = current
            self._on_change(current)
        elif not current and self._on_quiet is not None:
            self._on_quiet()
        # on_change may have stopped us
        if self._running:
            self._schedule()
