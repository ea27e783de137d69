"""
Shared fixtures: small synthetic WAV clips that pydub can read without ffmpeg.
"""

import io

import pytest
from pydub.generators import Sine

from cuedub.models import AudioClip, Cue, VoiceProfile


def make_wav(
    duration_ms: int = 500, freq: float = 440.0, sample_rate: int = 24000, volume: float = -12.0
) -> bytes:
    seg = Sine(freq, sample_rate=sample_rate).to_audio_segment(duration=duration_ms, volume=volume)
    buf = io.BytesIO()
    seg.export(buf, format="wav")
    return buf.getvalue()


def make_clip(
    start: float, duration_ms: int = 500, samples: bytes | None = None, index: int = 1
) -> AudioClip:
    cue = Cue(index=index, start=start, end=start + duration_ms / 1000.0, text=f"cue {index}")
    data = make_wav(duration_ms) if samples is None else samples
    return AudioClip(samples=data, cue=cue, profile=VoiceProfile.FEMALE)


@pytest.fixture
def wav_bytes():
    return make_wav


@pytest.fixture
def clip_factory():
    return make_clip
