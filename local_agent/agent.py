from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set, Tuple, Union

from .availability import available as _probe_availability
from .capabilities import Availability, LanguageModelSession, Platform, Utterance
from .errors import AgentStateError, CapabilityMissingError
from .events import (
    Assistant,
    Error,
    EventEmitter,
    EventType,
    Listener,
    Speaking,
    Start,
    Stop,
    User,
)
from .logging import NDJSONLogger, RichLogger, console_logger
from .recognition import RecognitionSupervisor
from .settings import settings
from .speaking_monitor import SpeakingMonitor
from .transcript import TranscriptAccumulator
from .turn_timer import TurnTimer

DEFAULT_INSTRUCTIONS = (
    "You are a helpful and friendly voice assistant. Reply with short answers without "
    "formatting and provide helpful information. Don't reply with content that is not "
    "related to the question and ask for clarifications if the question is not clear."
)


class AgentState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_TURN = "awaiting_turn"
    RESPONDING = "responding"
    STOPPED = "stopped"
    ERRORED = "errored"


ACTIVE_STATES = frozenset({AgentState.LISTENING, AgentState.AWAITING_TURN, AgentState.RESPONDING})
TERMINAL_STATES = frozenset({AgentState.STOPPED, AgentState.ERRORED})


# ----------------- agent config -----------------
@dataclass
class AgentOptions:
    instructions: Optional[str] = None  # system prompt; DEFAULT_INSTRUCTIONS when None
    turn_silence_threshold_ms: int = 1000  # silence after a final fragment that closes a turn
    voice_name: Optional[str] = None  # synthesis voice; platform default when not found
    logger: Optional[Callable[..., None]] = None  # diagnostic sink: logger(message, *args)
    speaking_poll_interval_ms: int = 500  # how often synthesis.speaking is sampled
    lang: str = "en-US"  # recognition and utterance language
    metrics_file: Optional[str] = None  # NDJSON turn metrics, disabled when None

    def __post_init__(self):
        """Validate configuration values to ensure they're reasonable."""
        if self.turn_silence_threshold_ms < 50:
            raise ValueError(
                f"turn_silence_threshold_ms must be >= 50ms, got {self.turn_silence_threshold_ms}"
            )
        if self.speaking_poll_interval_ms < 10:
            raise ValueError(
                f"speaking_poll_interval_ms must be >= 10ms, got {self.speaking_poll_interval_ms}"
            )
        if not self.lang:
            raise ValueError("lang must be a non-empty language tag")

    @property
    def resolved_instructions(self) -> str:
        return self.instructions or DEFAULT_INSTRUCTIONS

    @classmethod
    def from_settings(cls, **overrides: Any) -> "AgentOptions":
        values: Dict[str, Any] = {
            "instructions": settings.instructions,
            "turn_silence_threshold_ms": settings.turn_silence_ms,
            "voice_name": settings.voice_name,
            "logger": console_logger if settings.agent_log else None,
            "speaking_poll_interval_ms": settings.speaking_poll_ms,
            "lang": settings.lang,
        }
        values.update(overrides)
        return cls(**values)


# ----------------- agent -----------------
class LocalRealTimeAgent:
    """
    Turn-taking orchestrator for one spoken conversation.

    Recognition finals are buffered into a turn until the silence timer fires,
    the turn is prompted to the language model (one prompt at a time), and the
    reply is emitted as `assistant` and spoken. A final fragment that arrives
    while a reply is playing cancels playback before the new `user` event.

    Usage:
        agent = await LocalRealTimeAgent.create(platform, AgentOptions(voice_name="Albert"))
        agent.on(EventType.USER, lambda e: print("you:", e.text))
        agent.on(EventType.ASSISTANT, lambda e: print("bot:", e.text))
        agent.start()
        ...
        agent.stop()

    A stopped or errored agent is spent: create a new one to talk again.
    """

    def __init__(
        self,
        platform: Platform,
        options: Optional[AgentOptions] = None,
        *,
        session_id: Optional[str] = None,
    ):
        self.platform = platform
        self.options = options or AgentOptions()
        self.id = session_id or str(uuid.uuid4())

        # Turn / state
        self.state = AgentState.IDLE
        self.is_speaking = False
        self.turn_id = 0
        self._awaiting_playback = False
        self._speak_t0: Optional[float] = None
        self._prompts_pending = 0

        self._events = EventEmitter()
        self._transcript = TranscriptAccumulator()
        self._timer = TurnTimer(self.options.turn_silence_threshold_ms, self._on_turn_timer)
        self._monitor: Optional[SpeakingMonitor] = None
        if platform.synthesis is not None:
            self._monitor = SpeakingMonitor(
                platform.synthesis,
                self.options.speaking_poll_interval_ms,
                self._on_speaking_change,
                on_quiet=self._on_quiet_poll,
            )
        self._recognition = RecognitionSupervisor(
            platform.recognition,
            platform.synthesis,
            on_final=self._on_final,
            on_error=self._fail,
            playback_pending=lambda: self.is_speaking or self._awaiting_playback,
            lang=self.options.lang,
            log=self._log,
        )

        # Response engine
        self._lm_session: Optional[LanguageModelSession] = None
        self._setup_task: Optional[asyncio.Future] = None
        self._prompt_lock = asyncio.Lock()
        self._turn_tasks: Set[asyncio.Task] = set()

        self._metrics = NDJSONLogger(self.options.metrics_file) if self.options.metrics_file else None

    @classmethod
    async def create(
        cls,
        platform: Platform,
        options: Optional[AgentOptions] = None,
        **kwargs: Any,
    ) -> "LocalRealTimeAgent":
        """Construct an agent and finish its one-time language model session setup."""
        agent = cls(platform, options, **kwargs)
        await agent.setup()
        return agent

    @staticmethod
    async def available(platform: Platform, log: Optional[Callable[..., None]] = None) -> Availability:
        return await _probe_availability(platform, log)

    # ------------- subscriptions -------------
    def on(self, event_type: Union[EventType, str], listener: Listener) -> Listener:
        return self._events.on(event_type, listener)

    def off(self, event_type: Union[EventType, str], listener: Listener) -> None:
        self._events.off(event_type, listener)

    # ------------- introspection -------------
    @property
    def pending_transcript(self) -> str:
        return self._transcript.text

    @property
    def recognition(self):
        """The live recognition stream, or None when not listening."""
        return self._recognition.stream

    @property
    def active(self) -> bool:
        return self.state in ACTIVE_STATES

    # ------------- lifecycle -------------
    async def setup(self) -> None:
        """Create the language model session once; later calls reuse it."""
        if self._lm_session is not None:
            return
        if self._setup_task is None:
            if self.platform.language_model is None:
                raise CapabilityMissingError("language_model")
            self._setup_task = asyncio.ensure_future(
                self.platform.language_model.create(self.options.resolved_instructions)
            )
        self._lm_session = await self._setup_task

    def start(self) -> None:
        """
        Begin listening. Failures are reported through the `error` event and
        leave the agent ERRORED; they are not raised to the caller.
        """
        if self.state in TERMINAL_STATES:
            raise AgentStateError(f"agent is {self.state.value}; create a new agent")
        if self.state is not AgentState.IDLE:
            return

        self._log(RichLogger.session_start())
        try:
            missing = self.platform.missing
            if missing:
                raise CapabilityMissingError(missing[0])
            self._recognition.start()
            self._monitor.start()
            self._set_state(AgentState.LISTENING, "start")
            self._events.emit(Start())
        except Exception as e:
            self._log("error starting agent:", repr(e))
            self._fail(e)

    def stop(self) -> None:
        """
        Tear everything down and emit `stop`. If the recognition engine fails
        to stop, the failure is emitted as `error` and also re-raised.
        """
        if self.state in TERMINAL_STATES:
            return

        self._log(RichLogger.session_stop())
        try:
            self._teardown()
        except Exception as e:
            self._log("error stopping speech recognition:", repr(e))
            self._set_state(AgentState.ERRORED, "stop_failed")
            self._events.emit(Error(e))
            raise
        self._set_state(AgentState.STOPPED, "stop")
        self._events.emit(Stop())

    def speak(self, text: str) -> None:
        synthesis = self.platform.synthesis
        if synthesis is None:
            raise CapabilityMissingError("synthesis")

        self._log(RichLogger.tts_start(text))
        utterance = Utterance(text=text, lang=self.options.lang)
        if self.options.voice_name:
            voice = next(
                (v for v in synthesis.get_voices() if v.name == self.options.voice_name),
                None,
            )
            if voice is not None:
                self._log("tts voice:", voice.name)
                utterance.voice = voice
            else:
                self._log(f'voice "{self.options.voice_name}" not found. using default voice.')
        self._awaiting_playback = True
        self._speak_t0 = time.monotonic()
        synthesis.speak(utterance)

    # ------------- internals -------------
    def _log(self, message: str, *args: Any) -> None:
        if self.options.logger is not None:
            self.options.logger(message, *args)

    def _record(self, event: Dict[str, Any]) -> None:
        if self._metrics is not None:
            self._metrics.write({"t": time.time(), "sid": self.id, "turn": self.turn_id, **event})

    def _set_state(self, new_state: AgentState, reason: str = "") -> None:
        if new_state is self.state:
            return
        self._log(RichLogger.state_transition(self.state.value, new_state.value, reason))
        self.state = new_state

    def _settle(self, reason: str) -> None:
        """Derive the active state from what is outstanding."""
        if self.state not in ACTIVE_STATES:
            return
        if self._timer.armed:
            new_state = AgentState.AWAITING_TURN
        elif self._prompts_pending or self.is_speaking or self._awaiting_playback:
            new_state = AgentState.RESPONDING
        else:
            new_state = AgentState.LISTENING
        self._set_state(new_state, reason)

    def _teardown(self) -> None:
        """Cancel timer and poll, silence synthesis, stop recognition."""
        self._timer.cancel()
        if self._monitor is not None:
            self._monitor.stop()
        self._transcript.clear()
        self._awaiting_playback = False
        self._speak_t0 = None
        try:
            if self.platform.synthesis is not None:
                self.platform.synthesis.cancel()
        finally:
            self._recognition.stop()

    def _fail(self, error: BaseException) -> None:
        if self.state in TERMINAL_STATES:
            return
        self._log(RichLogger.error(repr(error)))
        try:
            self._teardown()
        except Exception as e:
            self._log("error stopping speech recognition:", repr(e))
        self._set_state(AgentState.ERRORED, type(error).__name__)
        self._events.emit(Error(error))

    def _on_final(self, text: str, interrupted: bool) -> None:
        if self.state not in ACTIVE_STATES:
            return
        if interrupted:
            # synthesis was already cancelled by the supervisor
            self._log(RichLogger.interruption())
            self._timer.cancel()
            self._awaiting_playback = False
            self._speak_t0 = None
            self._record({"evt": "interruption"})

        self._log(RichLogger.stt_final(text))
        self._transcript.append(text)
        self._events.emit(User(text))

        # a listener may have stopped us
        if self.state not in ACTIVE_STATES:
            return
        self._timer.arm()
        self._settle("interruption" if interrupted else "final_fragment")

    def _on_turn_timer(self) -> None:
        if self.state not in ACTIVE_STATES:
            return
        content = self._transcript.drain()
        if not content:
            self._settle("empty_turn")
            return

        self.turn_id += 1
        self._prompts_pending += 1
        self._settle("turn")
        task = asyncio.get_running_loop().create_task(self._process_turn(self.turn_id, content))
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_tasks.discard)

    async def _prompt(self, content: str) -> Tuple[Optional[str], float]:
        # one prompt in flight per agent; queued turns wait here
        async with self._prompt_lock:
            if self.state not in ACTIVE_STATES:
                return None, 0.0
            await self.setup()
            if self.state not in ACTIVE_STATES:
                return None, 0.0
            self._log(RichLogger.turn_dispatch(content))
            t0 = time.monotonic()
            response = await self._lm_session.prompt(content)
            return response, (time.monotonic() - t0) * 1000.0

    async def _process_turn(self, turn_id: int, content: str) -> None:
        try:
            response, prompt_ms = await self._prompt(content)
        except Exception as e:
            self._prompts_pending -= 1
            self._fail(e)
            return
        self._prompts_pending -= 1

        if response is None or self.state not in ACTIVE_STATES:
            return

        self._log(RichLogger.llm_response(response, prompt_ms))
        self._record(
            {
                "evt": "turn_metrics",
                "turn": turn_id,
                "prompt_chars": len(content),
                "reply_chars": len(response),
                "prompt_ms": int(prompt_ms),
            }
        )
        try:
            self._events.emit(Assistant(response))
            if self.state not in ACTIVE_STATES:
                return
            if response.strip():
                self.speak(response)
        except Exception as e:
            self._fail(e)
            return
        self._settle("response")

    def _on_speaking_change(self, speaking: bool) -> None:
        if self.state not in ACTIVE_STATES:
            return
        self._log("tts speaking:", speaking)
        self.is_speaking = speaking
        if speaking and self._speak_t0 is not None:
            latency_ms = int((time.monotonic() - self._speak_t0) * 1000.0)
            self._record({"evt": "speech_start", "speech_start_ms": latency_ms})
            self._speak_t0 = None
        if not speaking:
            self._awaiting_playback = False
        self._events.emit(Speaking(speaking))
        self._settle("speaking_started" if speaking else "speaking_finished")

    def _on_quiet_poll(self) -> None:
        # the utterance started and finished between two polls
        if not self._awaiting_playback or self.state not in ACTIVE_STATES:
            return
        self._awaiting_playback = False
        self._speak_t0 = None
        self._settle("speaking_finished")
