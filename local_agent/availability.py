from __future__ import annotations

from typing import Callable, Optional

from .capabilities import Availability, Platform

WARMUP_INSTRUCTIONS = "You are a helpful and friendly voice assistant."


async def available(
    platform: Platform,
    log: Optional[Callable[..., None]] = None,
) -> Availability:
    """
    One-shot readiness check for a platform.

    Returns "unavailable" without touching the language model when any
    capability is missing. A "downloadable" model gets a throwaway create()
    to start acquisition and is reported as "downloading"; any other
    classification is passed through unchanged.
    """
    if not platform.complete:
        if log:
            log("missing capabilities:", ", ".join(platform.missing))
        return "unavailable"

    status = await platform.language_model.availability()

    if status == "downloadable":
        try:
            await platform.language_model.create(WARMUP_INSTRUCTIONS)
        except Exception as e:
            # acquisition is best effort; the caller polls again later
            if log:
                log("language model download trigger failed:", repr(e))
        return "downloading"

    return status
