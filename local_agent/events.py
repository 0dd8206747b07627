from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, DefaultDict, Dict, List, Union


class EventType(str, Enum):
    START = "start"
    STOP = "stop"
    USER = "user"
    ASSISTANT = "assistant"
    SPEAKING = "speaking"
    ERROR = "error"


@dataclass(frozen=True)
class Start:
    type: ClassVar[EventType] = EventType.START


@dataclass(frozen=True)
class Stop:
    type: ClassVar[EventType] = EventType.STOP


@dataclass(frozen=True)
class User:
    text: str
    type: ClassVar[EventType] = EventType.USER


@dataclass(frozen=True)
class Assistant:
    text: str
    type: ClassVar[EventType] = EventType.ASSISTANT


@dataclass(frozen=True)
class Speaking:
    speaking: bool
    type: ClassVar[EventType] = EventType.SPEAKING


@dataclass(frozen=True)
class Error:
    error: BaseException
    type: ClassVar[EventType] = EventType.ERROR


AgentEvent = Union[Start, Stop, User, Assistant, Speaking, Error]
Listener = Callable[[Any], None]


def payload_of(event: AgentEvent) -> Dict[str, Any]:
    """Wire-friendly payload for an event (errors become their message)."""
    if isinstance(event, (User, Assistant)):
        return {"text": event.text}
    if isinstance(event, Speaking):
        return {"speaking": event.speaking}
    if isinstance(event, Error):
        return {"error": str(event.error), "kind": type(event.error).__name__}
    return {}


class EventEmitter:
    """
    Typed dispatch table: EventType -> listeners in registration order.

    Listeners receive the event object and run synchronously inside emit().
    Registering the same callable twice delivers the event twice.
    """

    def __init__(self):
        self._listeners: DefaultDict[EventType, List[Listener]] = defaultdict(list)

    def on(self, event_type: Union[EventType, str], listener: Listener) -> Listener:
        self._listeners[EventType(event_type)].append(listener)
        return listener

    def off(self, event_type: Union[EventType, str], listener: Listener) -> None:
        """Remove the most recent registration of `listener`, if any."""
        listeners = self._listeners[EventType(event_type)]
        for i in range(len(listeners) - 1, -1, -1):
            if listeners[i] == listener:
                del listeners[i]
                return

    def listener_count(self, event_type: Union[EventType, str]) -> int:
        return len(self._listeners[EventType(event_type)])

    def emit(self, event: AgentEvent) -> None:
        # snapshot so listeners added during delivery wait for the next event
        for listener in list(self._listeners[event.type]):
            listener(event)
