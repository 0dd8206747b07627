"""
Rich logging utilities for the turn-taking agent.
Provides emoji-tagged console diagnostics and an NDJSON sink for turn metrics.
"""

import time
from pathlib import Path
from typing import Any, Dict

import orjson


class RichLogger:
    """Formatting helpers for one-line, emoji-tagged agent diagnostics."""

    @staticmethod
    def _format_time() -> str:
        return time.strftime("%H:%M:%S", time.localtime())

    @staticmethod
    def _format_duration(ms: float) -> str:
        if ms < 1000:
            return f"{ms:.0f}ms"
        return f"{ms/1000:.1f}s"

    @staticmethod
    def _preview(text: str, limit: int = 40) -> str:
        return text if len(text) <= limit else text[:limit] + "…"

    @staticmethod
    def session_info(session_id: str, turn_id: int, state: str) -> str:
        return f"🎯 [{session_id[:8]}] T{turn_id} {state}"

    @staticmethod
    def stt_final(text: str) -> str:
        return f"✅ STT: '{RichLogger._preview(text)}'"

    @staticmethod
    def turn_dispatch(text: str) -> str:
        return f"🧠 Turn: '{RichLogger._preview(text)}'"

    @staticmethod
    def llm_response(text: str, latency_ms: float) -> str:
        return f"💬 Response: '{RichLogger._preview(text)}' ({RichLogger._format_duration(latency_ms)})"

    @staticmethod
    def tts_start(text: str) -> str:
        return f"🗣️  TTS: '{RichLogger._preview(text)}'"

    @staticmethod
    def state_transition(old_state: str, new_state: str, reason: str = "") -> str:
        return f"🔄 {old_state} → {new_state}" + (f" ({reason})" if reason else "")

    @staticmethod
    def interruption() -> str:
        return "⚡ Interruption detected!"

    @staticmethod
    def error(error_msg: str) -> str:
        return f"❌ Error: {error_msg}"

    @staticmethod
    def session_start() -> str:
        return "🚀 Agent Start"

    @staticmethod
    def session_stop() -> str:
        return "🛑 Agent Stop"


def console_logger(message: str, *args: Any) -> None:
    """Default diagnostic sink: timestamped print, extra args space-joined."""
    extra = " ".join(str(a) for a in args)
    line = f"{message} {extra}" if extra else message
    print(f"[{RichLogger._format_time()}] 🤖 {line}")


class NDJSONLogger:
    """Metrics logger for structured data output."""

    def __init__(self, path: str):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = Path(path)
        if not self.path.exists():
            self.path.touch()

    def write(self, event: Dict[str, Any]) -> None:
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(orjson.dumps(event).decode("utf-8") + "\n")
        except OSError as e:
            print(f"[{RichLogger._format_time()}] {RichLogger.error(f'metrics write failed: {e!r}')}")
