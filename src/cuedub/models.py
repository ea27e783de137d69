"""
Data models for the subtitle-timed dubbing pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass
class Cue:
    """A single subtitle cue with timing and text."""

    index: int
    start: float  # seconds
    end: float  # seconds
    text: str

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.start)


class VoiceProfile(str, Enum):
    """Speech style assigned to a cue."""

    CHILD = "child"
    FEMALE = "female"
    MALE = "male"

    @property
    def rate(self) -> float:
        """Speech-rate multiplier handed to the synthesis backend."""
        return _PROFILE_RATES[self]


_PROFILE_RATES = {
    VoiceProfile.CHILD: 0.9,
    VoiceProfile.FEMALE: 1.0,
    VoiceProfile.MALE: 1.0,
}


@dataclass
class AudioClip:
    """Synthesized speech for one cue. Empty samples mean a silent placeholder."""

    samples: bytes
    cue: Cue
    profile: VoiceProfile

    @property
    def is_silent(self) -> bool:
        return not self.samples


@dataclass(frozen=True)
class Timeline:
    """Clips to place on a silent base track of fixed length."""

    total_duration: float  # seconds, from the video
    clips: tuple[AudioClip, ...] = ()


class Stage(str, Enum):
    PARSED = "parsed"
    SYNTHESIZING = "synthesizing"
    COMPOSITING = "compositing"
    MUXING = "muxing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ProgressEvent:
    """Stage-completion signal reported to the caller."""

    stage: Stage
    done: int = 0
    total: int = 0
    reason: str | None = None

    def __str__(self) -> str:
        if self.stage is Stage.SYNTHESIZING:
            return f"{self.stage.value}({self.done}/{self.total})"
        if self.stage is Stage.FAILED:
            return f"{self.stage.value}({self.reason})"
        return self.stage.value


@dataclass
class DubJob:
    """One end-to-end request: a video plus matching timed text."""

    video_path: Path
    subtitle_text: str
    output_path: Path
    duration: float | None = None
    cues: list[Cue] = field(default_factory=list)
    timeline: Timeline | None = None
    artifact_path: Path | None = None
    stage: Stage | None = None

    def advance(self, stage: Stage) -> None:
        self.stage = stage

    def release(self) -> None:
        """Drop intermediate buffers once the job is finished."""
        self.cues = []
        self.timeline = None
