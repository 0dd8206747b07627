"""
Platform capabilities consumed by the agent.

The agent never reaches for ambient globals: recognition, synthesis and the
language model are injected per instance through a `Platform`. Any of them may
be None when the host does not provide it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Protocol

Availability = Literal["unavailable", "downloadable", "downloading", "available"]


# --------- Recognition ---------
@dataclass
class RecognitionAlternative:
    transcript: str
    confidence: float = 1.0


@dataclass
class RecognitionResult:
    alternatives: List[RecognitionAlternative]
    is_final: bool = False


@dataclass
class RecognitionResultEvent:
    results: List[RecognitionResult]


@dataclass
class RecognitionErrorEvent:
    error: str
    message: str = ""


class SpeechRecognition(Protocol):
    continuous: bool
    interim_results: bool
    lang: str
    on_result: Optional[Callable[[RecognitionResultEvent], None]]
    on_error: Optional[Callable[[RecognitionErrorEvent], None]]
    on_end: Optional[Callable[[], None]]

    def start(self) -> None: ...
    def stop(self) -> None: ...


RecognitionFactory = Callable[[], SpeechRecognition]


# --------- Synthesis ---------
@dataclass
class Voice:
    name: str
    lang: str = ""
    default: bool = False


@dataclass
class Utterance:
    text: str
    voice: Optional[Voice] = None
    lang: Optional[str] = None


class SpeechSynthesis(Protocol):
    @property
    def speaking(self) -> bool: ...

    def speak(self, utterance: Utterance) -> None: ...
    def cancel(self) -> None: ...
    def get_voices(self) -> List[Voice]: ...


# --------- Language model ---------
class LanguageModelSession(Protocol):
    async def prompt(self, text: str) -> str: ...


class LanguageModel(Protocol):
    async def availability(self) -> Availability: ...
    async def create(self, instructions: str) -> LanguageModelSession: ...


@dataclass
class Platform:
    recognition: Optional[RecognitionFactory] = None
    synthesis: Optional[SpeechSynthesis] = None
    language_model: Optional[LanguageModel] = None
    @property
    def missing(self) -> List[str]:
        return [
            name
            for name in ("recognition", "synthesis", "language_model")
            if getattr(self, name) is None
        ]

    @property
    def complete(self) -> bool:
        return not self.missing
