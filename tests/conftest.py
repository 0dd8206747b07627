import asyncio
from typing import Any, List, Optional

import pytest

from local_agent.agent import AgentOptions, LocalRealTimeAgent
from local_agent.capabilities import (
    Platform,
    RecognitionAlternative,
    RecognitionErrorEvent,
    RecognitionResult,
    RecognitionResultEvent,
    Utterance,
    Voice,
)
from local_agent.events import EventType

TURN_MS = 100
POLL_MS = 20


@pytest.fixture(autouse=True)
def _test_env(tmp_path, monkeypatch):
    # Ensure tests don’t write to repo root
    monkeypatch.setenv("LOCAL_AGENT_METRICS_FILE", str(tmp_path / "turns.ndjson"))
    yield


class CallLog(list):
    """Shared, ordered record of collaborator calls and emitted events."""

    def names(self) -> List[str]:
        return [c[0] for c in self]

    def events(self, name: str) -> List[Any]:
        return [c[1] for c in self if c[0] == f"event:{name}"]


class FakeRecognition:
    def __init__(self, factory: "FakeRecognitionFactory"):
        self.factory = factory
        self.continuous = False
        self.interim_results = False
        self.lang = ""
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.factory.calls.append(("recognition.start",))
        if self.factory.fail_start is not None:
            raise self.factory.fail_start
        self.started = True

    def stop(self) -> None:
        self.factory.calls.append(("recognition.stop",))
        self.stopped = True
        if self.factory.fail_stop is not None:
            raise self.factory.fail_stop

    # --- engine-side helpers ---
    def final(self, text: str) -> None:
        self.on_result(
            RecognitionResultEvent([RecognitionResult([RecognitionAlternative(text)], is_final=True)])
        )

    def interim(self, text: str) -> None:
        self.on_result(
            RecognitionResultEvent([RecognitionResult([RecognitionAlternative(text)], is_final=False)])
        )

    def error(self, code: str) -> None:
        self.on_error(RecognitionErrorEvent(error=code))

    def end(self) -> None:
        self.on_end()


class FakeRecognitionFactory:
    def __init__(self, calls: CallLog):
        self.calls = calls
        self.streams: List[FakeRecognition] = []
        self.fail_start: Optional[BaseException] = None
        self.fail_stop: Optional[BaseException] = None

    def __call__(self) -> FakeRecognition:
        stream = FakeRecognition(self)
        self.streams.append(stream)
        return stream

    @property
    def latest(self) -> FakeRecognition:
        return self.streams[-1]


class FakeSynthesis:
    def __init__(self, calls: CallLog):
        self.calls = calls
        self.speaking = False
        self.spoken: List[Utterance] = []
        self.voices: List[Voice] = [Voice("Albert", "en-US"), Voice("Samantha", "en-US", default=True)]
        # simulate the engine picking up a queued utterance immediately
        self.auto_speak = True

    def speak(self, utterance: Utterance) -> None:
        self.calls.append(("synthesis.speak", utterance.text))
        self.spoken.append(utterance)
        if self.auto_speak:
            self.speaking = True

    def cancel(self) -> None:
        self.calls.append(("synthesis.cancel",))
        self.speaking = False

    def get_voices(self) -> List[Voice]:
        return list(self.voices)


class FakeLanguageModelSession:
    def __init__(self, model: "FakeLanguageModel", instructions: str):
        self.model = model
        self.instructions = instructions
        self.prompts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def prompt(self, text: str) -> str:
        self.model.calls.append(("llm.prompt", text))
        self.prompts.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.model.gate is not None:
                await self.model.gate.wait()
            elif self.model.delay:
                await asyncio.sleep(self.model.delay)
            if self.model.prompt_error is not None:
                raise self.model.prompt_error
            return self.model.reply(text)
        finally:
            self.in_flight -= 1


class FakeLanguageModel:
    def __init__(self, calls: CallLog):
        self.calls = calls
        self.status = "available"
        self.create_error: Optional[BaseException] = None
        self.prompt_error: Optional[BaseException] = None
        self.sessions: List[FakeLanguageModelSession] = []
        self.gate: Optional[asyncio.Event] = None
        self.delay = 0.0
        self.reply = lambda text: f"echo: {text}"

    async def availability(self) -> str:
        self.calls.append(("llm.availability",))
        return self.status

    async def create(self, instructions: str) -> FakeLanguageModelSession:
        self.calls.append(("llm.create", instructions))
        if self.create_error is not None:
            raise self.create_error
        session = FakeLanguageModelSession(self, instructions)
        self.sessions.append(session)
        return session

    @property
    def session(self) -> FakeLanguageModelSession:
        return self.sessions[-1]


@pytest.fixture
def calls() -> CallLog:
    return CallLog()


@pytest.fixture
def recognition(calls) -> FakeRecognitionFactory:
    return FakeRecognitionFactory(calls)


@pytest.fixture
def synthesis(calls) -> FakeSynthesis:
    return FakeSynthesis(calls)


@pytest.fixture
def language_model(calls) -> FakeLanguageModel:
    return FakeLanguageModel(calls)


@pytest.fixture
def platform(recognition, synthesis, language_model) -> Platform:
    return Platform(recognition=recognition, synthesis=synthesis, language_model=language_model)


@pytest.fixture
def make_agent(platform, calls):
    """Build an agent with short timers whose events land in `calls` as ("event:<name>", payload)."""

    def _make(agent_platform: Optional[Platform] = None, **overrides: Any) -> LocalRealTimeAgent:
        opts = dict(turn_silence_threshold_ms=TURN_MS, speaking_poll_interval_ms=POLL_MS)
        opts.update(overrides)
        agent = LocalRealTimeAgent(agent_platform or platform, AgentOptions(**opts))
        for event_type in EventType:
            agent.on(event_type, lambda e, name=event_type.value: calls.append((f"event:{name}", _payload(e))))
        return agent

    return _make


def _payload(event) -> Any:
    for attr in ("text", "speaking", "error"):
        if hasattr(event, attr):
            return getattr(event, attr)
    return None
