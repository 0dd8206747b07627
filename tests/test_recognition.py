import asyncio

import pytest

from local_agent.capabilities import (
    RecognitionAlternative,
    RecognitionResult,
    RecognitionResultEvent,
)
from local_agent.errors import CapabilityMissingError, RecognitionError
from local_agent.recognition import RecognitionSupervisor, final_transcript


def _event(*results):
    return RecognitionResultEvent(
        [RecognitionResult([RecognitionAlternative(t)], is_final=f) for t, f in results]
    )


def _supervisor(recognition, synthesis, playback_pending=lambda: False):
    finals, errors = [], []
    sup = RecognitionSupervisor(
        recognition,
        synthesis,
        on_final=lambda text, interrupted: finals.append((text, interrupted)),
        on_error=errors.append,
        playback_pending=playback_pending,
        lang="en-GB",
    )
    return sup, finals, errors


def test_final_transcript_uses_last_result_only():
    assert final_transcript(_event(("hello", True), ("wor", False))) is None
    assert final_transcript(_event(("hel", False), ("  hello there ", True))) == "hello there"
    assert final_transcript(_event(("   ", True))) is None
    assert final_transcript(RecognitionResultEvent([])) is None


def test_stream_is_configured_for_continuous_interim(recognition, synthesis):
    sup, _, _ = _supervisor(recognition, synthesis)
    sup.start()
    stream = recognition.latest
    assert stream.continuous is True
    assert stream.interim_results is True
    assert stream.lang == "en-GB"
    assert sup.active and sup.stream is stream


def test_start_while_active_is_noop(recognition, synthesis):
    sup, _, _ = _supervisor(recognition, synthesis)
    sup.start()
    sup.start()
    assert len(recognition.streams) == 1


def test_missing_factory_raises(synthesis):
    sup, _, _ = _supervisor(None, synthesis)
    with pytest.raises(CapabilityMissingError):
        sup.start()
    assert not sup.active


def test_only_final_text_is_forwarded(recognition, synthesis):
    sup, finals, _ = _supervisor(recognition, synthesis)
    sup.start()
    recognition.latest.interim("book a")
    recognition.latest.final("book a table")
    assert finals == [("book a table", False)]
    assert ("synthesis.cancel",) not in synthesis.calls


def test_speech_is_cancelled_before_forwarding(recognition, synthesis, calls):
    sup = RecognitionSupervisor(
        recognition,
        synthesis,
        on_final=lambda text, interrupted: calls.append(("final", text, interrupted)),
        on_error=lambda e: None,
    )
    sup.start()
    synthesis.speaking = True
    recognition.latest.final("stop")
    assert calls[-2:] == [("synthesis.cancel",), ("final", "stop", True)]


def test_queued_playback_counts_as_interruption(recognition, synthesis):
    sup, finals, _ = _supervisor(recognition, synthesis, playback_pending=lambda: True)
    sup.start()
    recognition.latest.final("actually")
    assert finals == [("actually", True)]


def test_errors_are_forwarded_as_recognition_errors(recognition, synthesis):
    sup, _, errors = _supervisor(recognition, synthesis)
    sup.start()
    recognition.latest.error("not-allowed")
    [err] = errors
    assert isinstance(err, RecognitionError)
    assert err.code == "not-allowed"


@pytest.mark.asyncio
async def test_end_reopens_stream_from_the_loop(recognition, synthesis):
    sup, _, errors = _supervisor(recognition, synthesis)
    sup.start()
    recognition.latest.end()
    # restart is deferred, never nested in the end callback
    assert len(recognition.streams) == 1
    await asyncio.sleep(0)
    assert len(recognition.streams) == 2
    assert sup.restarts == 1
    assert errors == []


@pytest.mark.asyncio
async def test_end_after_stop_does_not_restart(recognition, synthesis):
    sup, _, _ = _supervisor(recognition, synthesis)
    sup.start()
    stream = recognition.latest
    sup.stop()
    stream.end()
    await asyncio.sleep(0.01)
    assert len(recognition.streams) == 1
    assert stream.stopped and sup.stream is None


@pytest.mark.asyncio
async def test_stop_between_end_and_restart_wins(recognition, synthesis):
    sup, _, _ = _supervisor(recognition, synthesis)
    sup.start()
    recognition.latest.end()
    sup.stop()
    await asyncio.sleep(0.01)
    assert len(recognition.streams) == 1


@pytest.mark.asyncio
async def test_failed_restart_is_reported(recognition, synthesis):
    sup, _, errors = _supervisor(recognition, synthesis)
    sup.start()
    boom = RuntimeError("audio device lost")
    recognition.fail_start = boom
    recognition.latest.end()
    await asyncio.sleep(0.01)
    assert errors == [boom]
    assert not sup.active


def test_stop_errors_propagate(recognition, synthesis):
    sup, _, _ = _supervisor(recognition, synthesis)
    sup.start()
    recognition.fail_stop = RuntimeError("already stopped")
    with pytest.raises(RuntimeError):
        sup.stop()
    assert sup.stream is None and not sup.active
