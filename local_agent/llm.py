from __future__ import annotations
import time
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .capabilities import Availability
from .logging import RichLogger
from .settings import settings

FALLBACK_REPLY = "Sorry, could you say that again?"


class OpenAIChatSession:
    """
    Stateful chat session for one agent:
      - Starts from the agent's system instructions.
      - Keeps a bounded user/assistant history so follow-ups like "and tomorrow?" resolve.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        instructions: str,
        *,
        model: str = settings.llm_model,
        max_tokens: int = settings.llm_max_tokens,
        max_history: int = 16,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.max_history = max_history  # cap to keep context small
        self.history: List[Dict[str, Any]] = [{"role": "system", "content": instructions}]

    def _trim(self):
        h = self.history
        if len(h) > self.max_history:
            # Keep system + last N-1
            self.history = [h[0]] + h[-(self.max_history - 1):]

    async def prompt(self, text: str) -> str:
        self.history.append({"role": "user", "content": text})
        if settings.llm_log:
            print(f"[{RichLogger._format_time()}] 🤖 LLM → user={text!r}")

        t0 = time.time()
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=self.history,
            temperature=0.2,
            max_tokens=self.max_tokens,
        )
        dt = (time.time() - t0) * 1000
        out = (resp.choices[0].message.content or "").strip() or FALLBACK_REPLY
        if settings.llm_log:
            print(f"[{RichLogger._format_time()}] 🤖 LLM ← dt={dt:.0f}ms say={out!r}")

        self.history.append({"role": "assistant", "content": out})
        self._trim()
        return out


class OpenAILanguageModel:
    """Response engine backed by the OpenAI chat completions API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.llm_model
        self._client: Optional[AsyncOpenAI] = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def availability(self) -> Availability:
        return "available" if self.enabled else "unavailable"

    async def create(self, instructions: str) -> OpenAIChatSession:
        if not self.enabled:
            raise RuntimeError("OPENAI_API_KEY is not set")
        if settings.llm_log:
            print(f"[{RichLogger._format_time()}] 🤖 LLM: session ready model={self.model}")
        return OpenAIChatSession(self._get_client(), instructions, model=self.model)
