"""
Websocket platform bridge.

The browser owns the Web Speech APIs; the agent runs on the server. This
module turns client messages into recognition callbacks and a mirrored
`speaking` flag, and turns recognition/synthesis calls into outbound commands.
Every outbound call is a non-blocking enqueue, so the agent's synchronous
operations stay synchronous.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from .capabilities import (
    LanguageModel,
    Platform,
    RecognitionAlternative,
    RecognitionErrorEvent,
    RecognitionResult,
    RecognitionResultEvent,
    Utterance,
    Voice,
)
from .events import AgentEvent, EventType, payload_of
from .wire import (
    MSG_CANCEL_SPEECH,
    MSG_EVENT,
    MSG_RECOGNITION_END,
    MSG_RECOGNITION_ERROR,
    MSG_RECOGNITION_RESULT,
    MSG_RECOGNITION_START,
    MSG_RECOGNITION_STOP,
    MSG_SPEAK,
    MSG_SPEAKING_STATE,
    MSG_VOICES,
)

SendFn = Callable[[Dict[str, Any]], None]


def parse_results(raw: List[Dict[str, Any]]) -> RecognitionResultEvent:
    """Accept either {transcript, is_final} or {alternatives: [...], is_final} per result."""
    results: List[RecognitionResult] = []
    for r in raw or []:
        alts = r.get("alternatives")
        if alts is None:
            alts = [{"transcript": r.get("transcript", ""), "confidence": r.get("confidence", 1.0)}]
        results.append(
            RecognitionResult(
                alternatives=[
                    RecognitionAlternative(
                        transcript=str(a.get("transcript") or ""),
                        confidence=float(a.get("confidence", 1.0)),
                    )
                    for a in alts
                ],
                is_final=bool(r.get("is_final", False)),
            )
        )
    return RecognitionResultEvent(results=results)


class RemoteRecognition:
    """One recognition stream running in the client."""

    def __init__(self, bridge: "WebSocketPlatformBridge"):
        self._bridge = bridge
        self.continuous = False
        self.interim_results = False
        self.lang = "en-US"
        self.on_result = None
        self.on_error = None
        self.on_end = None

    def start(self) -> None:
        self._bridge.current_recognition = self
        self._bridge.send(
            {
                "type": MSG_RECOGNITION_START,
                "continuous": self.continuous,
                "interim_results": self.interim_results,
                "lang": self.lang,
            }
        )

    def stop(self) -> None:
        if self._bridge.current_recognition is self:
            self._bridge.current_recognition = None
        self._bridge.send({"type": MSG_RECOGNITION_STOP})


class RemoteSynthesis:
    """Client-side speechSynthesis mirrored by speaking_state and voices messages."""

    def __init__(self, send: SendFn):
        self._send = send
        self._speaking = False
        self.voices: List[Voice] = []

    @property
    def speaking(self) -> bool:
        return self._speaking

    def speak(self, utterance: Utterance) -> None:
        # treat the queued utterance as speaking until the client says otherwise
        self._speaking = True
        self._send(
            {
                "type": MSG_SPEAK,
                "text": utterance.text,
                "voice": utterance.voice.name if utterance.voice else None,
                "lang": utterance.lang,
            }
        )

    def cancel(self) -> None:
        self._speaking = False
        self._send({"type": MSG_CANCEL_SPEECH})

    def get_voices(self) -> List[Voice]:
        return list(self.voices)

    def set_speaking(self, speaking: bool) -> None:
        self._speaking = speaking


class WebSocketPlatformBridge:
    def __init__(self, send: SendFn, language_model: Optional[LanguageModel] = None):
        self.send = send
        self.synthesis = RemoteSynthesis(send)
        self.language_model = language_model
        self.current_recognition: Optional[RemoteRecognition] = None

    def create_recognition(self) -> RemoteRecognition:
        return RemoteRecognition(self)

    def platform(self) -> Platform:
        return Platform(
            recognition=self.create_recognition,
            synthesis=self.synthesis,
            language_model=self.language_model,
        )

    def forward_events(self, agent) -> None:
        """Subscribe to every agent event and relay it to the client."""
        for event_type in EventType:
            agent.on(event_type, self._relay)

    def _relay(self, event: AgentEvent) -> None:
        self.send({"type": MSG_EVENT, "name": event.type.value, "payload": payload_of(event)})

    def handle_client_message(self, obj: Dict[str, Any]) -> bool:
        """Route a platform message. Returns False when the type is not ours."""
        typ = obj.get("type")
        rec = self.current_recognition

        if typ == MSG_RECOGNITION_RESULT:
            if rec is not None and rec.on_result is not None:
                rec.on_result(parse_results(obj.get("results") or []))
            return True

        elif typ == MSG_RECOGNITION_ERROR:
            if rec is not None and rec.on_error is not None:
                rec.on_error(
                    RecognitionErrorEvent(
                        error=str(obj.get("error") or "unknown"),
                        message=str(obj.get("message") or ""),
                    )
                )
            return True

        elif typ == MSG_RECOGNITION_END:
            if rec is not None and rec.on_end is not None:
                rec.on_end()
            return True

        elif typ == MSG_SPEAKING_STATE:
            self.synthesis.set_speaking(bool(obj.get("speaking")))
            return True

        elif typ == MSG_VOICES:
            self.synthesis.voices = [
                Voice(
                    name=str(v.get("name") or ""),
                    lang=str(v.get("lang") or ""),
                    default=bool(v.get("default", False)),
                )
                for v in obj.get("voices") or []
            ]
            return True

        return False
