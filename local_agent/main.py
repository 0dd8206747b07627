from __future__ import annotations

import asyncio
import contextlib
import os
import uuid
from typing import Any, Dict, Optional

import orjson
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .agent import TERMINAL_STATES, AgentOptions, LocalRealTimeAgent
from .availability import available
from .bridge import WebSocketPlatformBridge
from .llm import OpenAILanguageModel
from .logging import RichLogger
from .metrics import read_turn_metrics, summarize_file
from .settings import settings
from .wire import MSG_AVAILABILITY, MSG_START, MSG_STOP

app = FastAPI(title="local-agent")

# Log server startup configuration
print("🚀 Local Agent Server Starting")
print(f"🤖 LLM: {settings.llm_model} | ⏱️  Turn silence: {settings.turn_silence_ms}ms | 🗣️  Voice: {settings.voice_name or 'default'}")
print(f"🌐 {settings.host}:{settings.port} | 📊 Metrics: {settings.metrics_file}")
print("=" * 60)


# ----------------------------
# Per-connection session wrapper
# ----------------------------
class Session:
    """
    Websocket wrapper with a non-blocking outbound queue.

    The agent and bridge call send_nowait() from synchronous code; a single
    writer task serializes frames onto the socket in enqueue order.
    """

    def __init__(self, ws: WebSocket, session_id: Optional[str] = None):
        self.ws = ws
        self.id = session_id or str(uuid.uuid4())
        self._outbox: asyncio.Queue = asyncio.Queue()

    async def accept(self):
        await self.ws.accept()

    async def close(self, code: int = 1000):
        with contextlib.suppress(Exception):
            await self.ws.close(code=code)

    def send_nowait(self, obj: Dict[str, Any]) -> None:
        self._outbox.put_nowait(obj)

    async def run_writer(self):
        while True:
            obj = await self._outbox.get()
            await self.ws.send_text(orjson.dumps(obj).decode("utf-8"))


def _log(session: Session, message: str) -> None:
    print(f"[{RichLogger._format_time()}] {RichLogger.session_info(session.id, 0, 'WS')} {message}")


# ----------------------------
# WebSocket endpoint
# ----------------------------
@app.websocket("/ws/agent")
async def ws_agent(ws: WebSocket):
    session = Session(ws)
    await session.accept()
    writer = asyncio.create_task(session.run_writer())

    bridge = WebSocketPlatformBridge(session.send_nowait, OpenAILanguageModel())
    platform = bridge.platform()
    agent: Optional[LocalRealTimeAgent] = None

    session.send_nowait({"type": MSG_AVAILABILITY, "status": await available(platform)})

    try:
        while True:
            msg = await ws.receive()
            t = msg["type"]
            if t == "websocket.disconnect":
                break
            if t != "websocket.receive" or msg.get("text") is None:
                continue
            try:
                obj = orjson.loads(msg["text"])
            except orjson.JSONDecodeError:
                _log(session, RichLogger.error("bad json"))
                continue

            typ = obj.get("type")
            if typ == MSG_START:
                if agent is None or agent.state in TERMINAL_STATES:
                    # a stopped/errored agent is spent; start a fresh conversation
                    agent = LocalRealTimeAgent(
                        platform,
                        AgentOptions.from_settings(metrics_file=settings.metrics_file),
                        session_id=session.id,
                    )
                    bridge.forward_events(agent)
                    try:
                        await agent.setup()
                    except Exception as e:
                        # the first turn re-raises this through the error event
                        _log(session, RichLogger.error(f"language model setup failed: {e!r}"))
                agent.start()
            elif typ == MSG_STOP:
                if agent is not None:
                    try:
                        agent.stop()
                    except Exception as e:
                        # already relayed to the client as an error event
                        _log(session, RichLogger.error(f"stop failed: {e!r}"))
            elif not bridge.handle_client_message(obj):
                _log(session, RichLogger.error(f"unknown message type {typ!r}"))
    except WebSocketDisconnect:
        pass
    except Exception as e:
        _log(session, RichLogger.error(f"server_error:{type(e).__name__}: {e}"))
    finally:
        if agent is not None:
            with contextlib.suppress(Exception):
                agent.stop()
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
        await session.close()


# ----------------------------
# Health & minimal metrics view
# ----------------------------
@app.get("/health")
def health():
    return {"ok": True}

@app.get("/metrics")
def metrics_summary():
    return JSONResponse(summarize_file(settings.metrics_file))

@app.get("/metrics/turns")
def get_turns():
    """Get all individual turn metrics."""
    turns = read_turn_metrics(settings.metrics_file)
    return JSONResponse(turns)

@app.delete("/metrics")
def reset_metrics():
    """Clear all metrics data by truncating the metrics file."""
    try:
        metrics_path = settings.metrics_file
        if os.path.exists(metrics_path):
            with open(metrics_path, 'w') as f:
                f.truncate(0)
        return {"message": "Metrics cleared successfully"}
    except OSError as e:
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to clear metrics: {str(e)}"}
        )
