from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

import orjson

from .settings import settings

METRIC_KEYS = ("prompt_ms", "prompt_chars", "reply_chars")


@dataclass
class Percentiles:
    count: int
    p50: int
    p95: int


def _percentile(sorted_vals: List[int], p: float) -> int:
    if not sorted_vals:
        return 0
    if p <= 0:
        return int(sorted_vals[0])
    if p >= 1:
        return int(sorted_vals[-1])
    k = p * (len(sorted_vals) - 1)
    f = int(k)
    c = min(f + 1, len(sorted_vals) - 1)
    if f == c:
        return int(sorted_vals[f])
    # linear interpolation
    return int(round(sorted_vals[f] + (sorted_vals[c] - sorted_vals[f]) * (k - f), 0))


def _summarize(vals: List[int]) -> Percentiles:
    vals_sorted = sorted(int(v) for v in vals if v is not None)
    return Percentiles(
        count=len(vals_sorted),
        p50=_percentile(vals_sorted, 0.50),
        p95=_percentile(vals_sorted, 0.95),
    )


def read_events(path: Union[str, Path], evt: Optional[str] = None) -> List[Dict]:
    """All NDJSON records in `path`, optionally only those with a matching `evt`."""
    p = Path(path)
    if not p.exists():
        return []
    out: List[Dict] = []
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                obj = orjson.loads(line)
            except orjson.JSONDecodeError:
                continue
            if evt is None or obj.get("evt") == evt:
                out.append(obj)
    return out


def read_turn_metrics(path: Union[str, Path]) -> List[Dict]:
    return read_events(path, "turn_metrics")


def summarize_turns(turns: List[Dict]) -> Dict[str, Dict]:
    buckets: Dict[str, List[int]] = {k: [] for k in METRIC_KEYS}
    for t in turns:
        for k in METRIC_KEYS:
            v = t.get(k)
            if isinstance(v, (int, float)):
                buckets[k].append(int(v))

    return {
        k: {
            "count": s.count,
            "p50": s.p50,
            "p95": s.p95,
        }
        for k, s in ((k, _summarize(vs)) for k, vs in buckets.items())
    }


def summarize_file(path: Union[str, Path, None] = None) -> Dict:
    """
    Session-level view of a metrics file: turn count, how often the user
    talked over a reply, prompt percentiles and how long synthesis took to
    start after a reply was handed to it.
    """
    path = path or settings.metrics_file
    events = read_events(path)
    turns = [e for e in events if e.get("evt") == "turn_metrics"]
    interruptions = sum(1 for e in events if e.get("evt") == "interruption")
    speech_starts = _summarize(
        [e["speech_start_ms"] for e in events if e.get("evt") == "speech_start" and "speech_start_ms" in e]
    )
    return {
        "turns": len(turns),
        "interruptions": interruptions,
        # a turn can be interrupted more than once, so this may exceed 1.0
        "interruption_rate": round(interruptions / len(turns), 3) if turns else 0.0,
        "metrics": summarize_turns(turns),
        "speech_start_ms": asdict(speech_starts),
    }
