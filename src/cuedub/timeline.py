"""
Audio timeline compositing: place synthesized cue clips on a silent base track
of the video's length and mix them into one continuous track.
"""

import audioop
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pydub import AudioSegment

from .errors import CompositingFailed
from .models import AudioClip, Cue

logger = logging.getLogger("cuedub")

DEFAULT_SAMPLE_RATE = 44100
DEFAULT_CHANNELS = 2
SAMPLE_WIDTH = 2  # 16-bit PCM


class OverlapPolicy(str, Enum):
    """What to do when a clip starts before the previous one has finished.

    ``additive`` sums both clips, ``last-wins`` cuts the earlier clip where the
    later one starts, ``reject`` drops the later clip.
    """

    ADDITIVE = "additive"
    LAST_WINS = "last-wins"
    REJECT = "reject"


@dataclass
class Placement:
    """A decoded clip scheduled at a frame offset on the track."""

    offset: int  # frames from the start of the track
    audio: AudioSegment
    cue: Cue

    @property
    def end(self) -> int:
        return self.offset + int(self.audio.frame_count())


class Mixer(Protocol):
    def mix(self, base: AudioSegment, placements: list[Placement]) -> AudioSegment:
        """Return ``base`` with every placement summed in at its offset."""
        ...


class PydubMixer:
    """In-process additive mixing with pydub.

    Each clip is summed into its own span of one shared buffer, so the cost is
    proportional to the total clip length plus one copy of the track. Sums
    saturate at the sample limits, as with ``AudioSegment.overlay``.
    """

    def mix(self, base: AudioSegment, placements: list[Placement]) -> AudioSegment:
        width = base.frame_width
        end = max([int(base.frame_count())] + [p.end for p in placements])
        buf = bytearray(base.raw_data)
        buf.extend(b"\x00" * (end * width - len(buf)))
        for p in placements:
            lo, hi = p.offset * width, p.end * width
            buf[lo:hi] = audioop.add(bytes(buf[lo:hi]), p.audio.raw_data, base.sample_width)
        return AudioSegment(
            data=bytes(buf),
            sample_width=base.sample_width,
            frame_rate=base.frame_rate,
            channels=base.channels,
        )


def decode_clip(samples: bytes) -> AudioSegment:
    """Decode encoded clip bytes; WAV is read without ffmpeg."""
    head = samples[:4]
    if head == b"RIFF":
        fmt = "wav"
    elif head[:3] == b"ID3" or head[:2] in (b"\xff\xfb", b"\xff\xf3", b"\xff\xf2"):
        fmt = "mp3"
    elif head == b"OggS":
        fmt = "ogg"
    else:
        fmt = None
    return AudioSegment.from_file(io.BytesIO(samples), format=fmt)


def resolve_overlaps(placements: list[Placement], policy: OverlapPolicy | str) -> list[Placement]:
    """Apply the overlap policy to placements sorted by offset."""
    policy = OverlapPolicy(policy)
    if policy is OverlapPolicy.ADDITIVE:
        return placements

    out: list[Placement] = []
    if policy is OverlapPolicy.REJECT:
        reach = 0
        for p in placements:
            if out and p.offset < reach:
                logger.warning("Overlap: dropping cue %d (starts %.3fs)", p.cue.index, p.cue.start)
                continue
            out.append(p)
            reach = max(reach, p.end)
        return out

    for i, p in enumerate(placements):
        nxt = placements[i + 1].offset if i + 1 < len(placements) else None
        if nxt is not None and nxt < p.end:
            keep = nxt - p.offset
            if keep <= 0:
                logger.warning(
                    "Overlap: cue %d fully replaced by cue %d", p.cue.index, placements[i + 1].cue.index
                )
                continue
            p = Placement(offset=p.offset, audio=p.audio.get_sample_slice(0, keep), cue=p.cue)
        out.append(p)
    return out


class TimelineCompositor:
    """Places clips on a silent base track of known duration.

    Seconds are converted to frames only here. Empty clips and clips starting at
    or after the end of the track are never scheduled. A clip running past the
    end extends the track rather than being cut.
    """

    def __init__(
        self,
        mixer: Mixer | None = None,
        overlap_policy: OverlapPolicy | str = OverlapPolicy.ADDITIVE,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
    ) -> None:
        self.mixer = mixer or PydubMixer()
        self.overlap_policy = OverlapPolicy(overlap_policy)
        self.sample_rate = sample_rate
        self.channels = channels

    def to_frames(self, seconds: float) -> int:
        return int(round(seconds * self.sample_rate))

    def silent_base(self, total_duration: float) -> AudioSegment:
        frames = self.to_frames(max(0.0, total_duration))
        return AudioSegment(
            data=b"\x00" * (frames * SAMPLE_WIDTH * self.channels),
            sample_width=SAMPLE_WIDTH,
            frame_rate=self.sample_rate,
            channels=self.channels,
        )

    def conform(self, audio: AudioSegment) -> AudioSegment:
        return (
            audio.set_sample_width(SAMPLE_WIDTH)
            .set_frame_rate(self.sample_rate)
            .set_channels(self.channels)
        )

    def schedule(self, total_duration: float, clips: Iterable[AudioClip]) -> list[Placement]:
        placements: list[Placement] = []
        for clip in sorted(clips, key=lambda c: c.cue.start):
            if clip.is_silent:
                continue
            start = clip.cue.start
            if start < 0 or start >= total_duration:
                logger.info(
                    "Dropping cue %d: starts at %.3fs, track is %.3fs",
                    clip.cue.index,
                    start,
                    total_duration,
                )
                continue
            try:
                audio = self.conform(decode_clip(clip.samples))
            except Exception as e:
                logger.error("Could not read synthesized clip for cue %d: %s", clip.cue.index, e)
                continue
            if not audio.frame_count():
                continue
            placements.append(Placement(offset=self.to_frames(start), audio=audio, cue=clip.cue))
        return resolve_overlaps(placements, self.overlap_policy)

    def composite(self, total_duration: float, clips: Iterable[AudioClip]) -> AudioSegment:
        base = self.silent_base(total_duration)
        placements = self.schedule(total_duration, clips)
        logger.info(
            "Compositing %d clip(s) onto %.3fs base (%s)",
            len(placements),
            total_duration,
            self.overlap_policy.value,
        )
        try:
            track = self.mixer.mix(base, placements)
        except CompositingFailed:
            raise
        except Exception as e:
            logger.exception("Mixing failed")
            raise CompositingFailed() from e

        overrun = track.frame_count() - base.frame_count()
        if overrun > 0:
            logger.info("[dur] speech runs %.3fs past the video end", overrun / self.sample_rate)
        return track


def composite(total_duration: float, clips: Iterable[AudioClip], **kwargs) -> AudioSegment:
    """Composite ``clips`` onto ``total_duration`` seconds of silence."""
    return TimelineCompositor(**kwargs).composite(total_duration, clips)
