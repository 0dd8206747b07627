from __future__ import annotations

import asyncio
from typing import Callable, Optional

from .capabilities import (
    RecognitionErrorEvent,
    RecognitionFactory,
    RecognitionResultEvent,
    SpeechRecognition,
    SpeechSynthesis,
)
from .errors import CapabilityMissingError, RecognitionError

LogSink = Callable[..., None]


def _noop_log(message: str, *args) -> None:
    return None


def final_transcript(event: RecognitionResultEvent) -> Optional[str]:
    """Trimmed text of the last result if it is final and non-empty, else None."""
    if not event.results:
        return None
    last = event.results[-1]
    if not last.is_final or not last.alternatives:
        return None
    text = (last.alternatives[0].transcript or "").strip()
    return text or None


class RecognitionSupervisor:
    """
    Owns the continuous recognition stream for one agent.

    - start() opens at most one stream; calling it again while active is a no-op.
    - Final, non-empty text goes to `on_final(text, interrupted)`. While a
      reply is playing or queued for playback, synthesis is cancelled
      *before* on_final runs.
    - Engine errors go to `on_error` and are not retried.
    - A stream that ends on its own is reopened from the loop, so restarts
      never nest inside the ending stream's callback.
    """

    def __init__(
        self,
        factory: Optional[RecognitionFactory],
        synthesis: Optional[SpeechSynthesis],
        *,
        on_final: Callable[[str, bool], None],
        on_error: Callable[[BaseException], None],
        playback_pending: Callable[[], bool] = lambda: False,
        lang: str = "en-US",
        log: Optional[LogSink] = None,
    ):
        self._factory = factory
        self._synthesis = synthesis
        self._on_final = on_final
        self._on_error = on_error
        self._playback_pending = playback_pending
        self.lang = lang
        self._log = log or _noop_log
        self._stream: Optional[SpeechRecognition] = None
        self._active = False
        self.restarts = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def stream(self) -> Optional[SpeechRecognition]:
        return self._stream

    def start(self) -> None:
        if self._active:
            return
        if self._factory is None:
            raise CapabilityMissingError("recognition")
        self._active = True
        try:
            self._open()
        except BaseException:
            self._active = False
            raise

    def stop(self) -> None:
        """Stop the stream. Errors from the engine's stop() propagate."""
        stream = self._stream
        self._stream = None
        self._active = False
        if stream is not None:
            stream.stop()

    # ------------- internals -------------
    def _open(self) -> None:
        stream = self._factory()
        stream.continuous = True
        stream.interim_results = True
        stream.lang = self.lang
        stream.on_result = lambda event: self._handle_result(stream, event)
        stream.on_error = lambda event: self._handle_error(stream, event)
        stream.on_end = lambda: self._handle_end(stream)
        stream.start()
        self._stream = stream

    def _handle_result(self, stream: SpeechRecognition, event: RecognitionResultEvent) -> None:
        if stream is not self._stream:
            return
        text = final_transcript(event)
        if text is None:
            return
        interrupted = False
        if self._synthesis is not None and (self._synthesis.speaking or self._playback_pending()):
            self._log("interruption detected")
            self._synthesis.cancel()
            interrupted = True
        self._log("stt detected:", text[:40])
        self._on_final(text, interrupted)

    def _handle_error(self, stream: SpeechRecognition, event: RecognitionErrorEvent) -> None:
        if stream is not self._stream:
            return
        self._log("speech recognition error:", event.error)
        self._on_error(RecognitionError(event.error, event.message))

    def _handle_end(self, stream: SpeechRecognition) -> None:
        if stream is not self._stream or not self._active:
            return
        self._log("speech recognition ended")
        asyncio.get_running_loop().call_soon(self._restart, stream)

    def _restart(self, ended: SpeechRecognition) -> None:
        # stop() or an earlier restart may have happened in between
        if ended is not self._stream or not self._active:
            return
        self._log("restarting speech recognition")
        self.restarts += 1
        try:
            self._open()
        except Exception as e:
            self._stream = None
            self._active = False
            self._on_error(e)
