"""
Tests for the synthesis adapter and the per-cue synthesis loop.
"""

import asyncio
import time

import httpx
import pytest

from cuedub.errors import SynthesisFailed
from cuedub.models import Cue, VoiceProfile
from cuedub.tts import SpeechSynthesizer, make_synth_google
from cuedub.tts_async import synthesize_cues
from cuedub.voices import VoiceClassifier


def _cues(n: int) -> list[Cue]:
    return [Cue(index=i + 1, start=float(i), end=float(i) + 0.9, text=f"line {i}") for i in range(n)]


def _classifier() -> VoiceClassifier:
    return VoiceClassifier(seed=7, script="any")


async def echo_backend(text: str, profile: VoiceProfile, timeout: float) -> bytes:
    return text.encode()


async def failing_backend(text: str, profile: VoiceProfile, timeout: float) -> bytes:
    raise ConnectionError("quota exceeded")


def _synthesize(backend, cue: Cue, profile: VoiceProfile):
    return asyncio.run(SpeechSynthesizer(backend).synthesize(cue, profile))


def test_synthesize_success():
    cue = Cue(index=1, start=0.0, end=1.0, text="hello")

    clip = _synthesize(echo_backend, cue, VoiceProfile.MALE)

    assert clip.samples == b"hello"
    assert clip.cue is cue
    assert clip.profile == VoiceProfile.MALE


def test_synthesize_failure_becomes_silent_clip():
    cue = Cue(index=1, start=0.0, end=1.0, text="hello")

    clip = _synthesize(failing_backend, cue, VoiceProfile.CHILD)

    assert clip.is_silent
    assert clip.cue is cue


def test_synthesize_blank_text_skips_backend():
    calls = []

    async def backend(text, profile, timeout):
        calls.append(text)
        return b"x"

    clip = _synthesize(backend, Cue(1, 0.0, 1.0, "   "), VoiceProfile.MALE)

    assert clip.is_silent
    assert calls == []


def test_google_backend_request_and_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, headers={"content-type": "audio/mpeg"}, content=b"ID3mp3data")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    synth = make_synth_google("si", client=client)

    assert asyncio.run(synth("ආයුබෝවන්", VoiceProfile.CHILD, 5.0)) == b"ID3mp3data"
    assert seen["tl"] == "si"
    assert seen["ttsspeed"] == "0.9"
    assert seen["q"] == "ආයුබෝවන්"
    assert seen["client"] == "tw-ob"


def test_google_backend_rejects_non_audio():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html>")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    synth = make_synth_google("si", client=client)

    with pytest.raises(SynthesisFailed):
        asyncio.run(synth("text", VoiceProfile.MALE, 5.0))

    clip = _synthesize(synth, Cue(1, 0.0, 1.0, "text"), VoiceProfile.MALE)
    assert clip.is_silent


def test_cue_cap_leaves_remaining_cues_silent():
    calls = []

    async def backend(text, profile, timeout):
        calls.append(text)
        return text.encode()

    cues = _cues(5)
    clips = synthesize_cues(
        cues, SpeechSynthesizer(backend), _classifier(), max_cues=3, call_delay=0.0, progress_bar=False
    )

    assert len(clips) == 5
    assert [c.cue for c in clips] == cues
    assert [c.is_silent for c in clips] == [False, False, False, True, True]
    assert len(calls) == 3


def test_all_failures_still_yield_one_clip_per_cue():
    cues = _cues(4)

    clips = synthesize_cues(
        cues, SpeechSynthesizer(failing_backend), _classifier(), call_delay=0.0, progress_bar=False
    )

    assert len(clips) == 4
    assert all(c.is_silent for c in clips)


def test_concurrent_synthesis_keeps_cue_order():
    async def slow_first(text, profile, timeout):
        # earlier cues finish last
        i = int(text.split()[-1])
        await asyncio.sleep(0.02 * (5 - i))
        return text.encode()

    cues = _cues(5)
    clips = synthesize_cues(
        cues,
        SpeechSynthesizer(slow_first),
        _classifier(),
        call_delay=0.0,
        max_concurrent=5,
        progress_bar=False,
    )

    assert [c.samples for c in clips] == [c.text.encode() for c in cues]


def test_timeout_becomes_silence_without_waiting_for_the_call():
    async def hung(text, profile, timeout):
        await asyncio.sleep(3.0)
        return b"late"

    started = time.monotonic()
    clips = synthesize_cues(
        _cues(1), SpeechSynthesizer(hung), _classifier(), call_delay=0.0, timeout=0.1, progress_bar=False
    )
    elapsed = time.monotonic() - started

    assert clips[0].is_silent
    assert elapsed < 1.0


def test_timed_out_call_frees_its_slot():
    active = 0
    peak = 0

    async def backend(text, profile, timeout):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            if text.endswith("0"):
                await asyncio.sleep(3.0)
            return text.encode()
        finally:
            active -= 1

    started = time.monotonic()
    clips = synthesize_cues(
        _cues(3),
        SpeechSynthesizer(backend),
        _classifier(),
        call_delay=0.0,
        timeout=0.1,
        max_concurrent=1,
        progress_bar=False,
    )

    assert time.monotonic() - started < 1.0
    assert peak == 1
    assert [c.is_silent for c in clips] == [True, False, False]


def test_calls_are_spaced_by_call_delay():
    starts = []

    async def backend(text, profile, timeout):
        starts.append(time.monotonic())
        return b"x"

    synthesize_cues(
        _cues(4),
        SpeechSynthesizer(backend),
        _classifier(),
        call_delay=0.1,
        max_concurrent=4,
        progress_bar=False,
    )

    starts.sort()
    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert len(gaps) == 3
    assert min(gaps) >= 0.08


def test_progress_callback_counts_up():
    progress = []

    synthesize_cues(
        _cues(3),
        SpeechSynthesizer(echo_backend),
        _classifier(),
        call_delay=0.0,
        on_progress=lambda done, total: progress.append((done, total)),
        progress_bar=False,
    )

    assert progress == [(0, 3), (1, 3), (2, 3), (3, 3)]


def test_progress_total_is_capped_count_throughout():
    progress = []

    synthesize_cues(
        _cues(4),
        SpeechSynthesizer(echo_backend),
        _classifier(),
        max_cues=2,
        call_delay=0.0,
        on_progress=lambda done, total: progress.append((done, total)),
        progress_bar=False,
    )

    assert progress == [(0, 2), (1, 2), (2, 2)]
