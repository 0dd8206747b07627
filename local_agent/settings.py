from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv, find_dotenv

# Load .env if present
load_dotenv(find_dotenv(usecwd=True), override=False)

def _get_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")

@dataclass(frozen=True)
class Settings:
    host: str = os.getenv("LOCAL_AGENT_HOST", "0.0.0.0")
    port: int = int(os.getenv("LOCAL_AGENT_PORT", "8080"))

    # Turn taking
    turn_silence_ms: int = int(os.getenv("LOCAL_AGENT_TURN_SILENCE_MS", "1000"))
    speaking_poll_ms: int = int(os.getenv("LOCAL_AGENT_SPEAKING_POLL_MS", "500"))
    lang: str = os.getenv("LOCAL_AGENT_LANG", "en-US")
    voice_name: Optional[str] = os.getenv("LOCAL_AGENT_VOICE") or None
    instructions: Optional[str] = os.getenv("LOCAL_AGENT_INSTRUCTIONS") or None

    # Diagnostics
    agent_log: bool = _get_bool("LOCAL_AGENT_LOG", True)   # <— turn on/off console diagnostics

    # Metrics
    metrics_file: str = os.getenv("LOCAL_AGENT_METRICS_FILE", "./metrics/turns.ndjson")

    # LLM
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LOCAL_AGENT_LLM_MODEL", "gpt-4o-mini")
    llm_max_tokens: int = int(os.getenv("LOCAL_AGENT_LLM_MAX_TOKENS", "160"))
    llm_log: bool = _get_bool("LOCAL_AGENT_LLM_LOG", True)


settings = Settings()
