"""
Audio and video processing utilities using ffmpeg/ffprobe.
"""

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

from pydub import AudioSegment

from .errors import CompositingFailed, MuxFailed
from .timeline import Placement

logger = logging.getLogger("cuedub")

MIN_ARTIFACT_BYTES = 1024


def run(cmd: list[str], *, check: bool = True) -> str:
    """Run a shell command and return stdout."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    proc = subprocess.run(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, check=False
    )
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout)
        msg = f"Command failed with code {proc.returncode}"
        raise RuntimeError(msg)
    return proc.stdout


def ensure_dir(path: str | Path) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def probe_duration(input_video: str | Path, fallback: float = 0.0) -> float:
    """Container duration in seconds, or ``fallback`` when ffprobe cannot tell."""
    try:
        out = run(
            [
                "ffprobe",
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(input_video),
            ]
        )
    except (RuntimeError, OSError) as e:
        logger.warning("ffprobe failed for %s: %s; using %.3fs", input_video, e, fallback)
        return fallback
    try:
        seconds = float(out.strip())
    except ValueError:
        logger.warning("Unknown duration for %s (%r); using %.3fs", input_video, out.strip(), fallback)
        return fallback
    return seconds if seconds > 0 else fallback


def build_mix_filter(placements: list[Placement]) -> str:
    """ffmpeg filter graph: input 0 is the base, inputs 1..n are delayed clips.

    Delays are given in samples so offsets stay frame exact; ``normalize=0``
    keeps amix a plain sum and ``duration=longest`` keeps tails past the base.
    """
    parts = [f"[{i}:a]adelay=delays={p.offset}S:all=1[a{i}]" for i, p in enumerate(placements, 1)]
    labels = "".join(f"[a{i}]" for i in range(1, len(placements) + 1))
    parts.append(
        f"[0:a]{labels}amix=inputs={len(placements) + 1}:duration=longest:normalize=0[mix]"
    )
    return ";".join(parts)


class FfmpegMixer:
    """Subprocess mixer: silent base plus ``adelay``-ed clips through ``amix``."""

    def mix(self, base: AudioSegment, placements: list[Placement]) -> AudioSegment:
        if not placements:
            return base
        with tempfile.TemporaryDirectory(prefix="cuedub-mix-") as tmp:
            base_wav = Path(tmp) / "base.wav"
            base.export(base_wav, format="wav").close()
            cmd = ["ffmpeg", "-y", "-i", str(base_wav)]
            for i, p in enumerate(placements):
                clip_wav = Path(tmp) / f"clip_{i:04d}.wav"
                p.audio.export(clip_wav, format="wav").close()
                cmd += ["-i", str(clip_wav)]
            out_wav = Path(tmp) / "mix.wav"
            cmd += [
                "-filter_complex",
                build_mix_filter(placements),
                "-map",
                "[mix]",
                "-c:a",
                "pcm_s16le",
                "-ar",
                str(base.frame_rate),
                "-ac",
                str(base.channels),
                str(out_wav),
            ]
            try:
                run(cmd)
            except (RuntimeError, OSError) as e:
                raise CompositingFailed() from e
            return AudioSegment.from_wav(out_wav)


class Muxer(Protocol):
    def mux(self, video_path: str | Path, audio_track: AudioSegment, out_path: str | Path) -> Path:
        ...


class FfmpegMuxer:
    """Copy the video stream and replace the audio with the composited track.

    Output is cut to the shorter stream. An artifact that is missing or not
    larger than ``min_bytes`` counts as a failure even if ffmpeg exited 0.
    """

    def __init__(self, min_bytes: int = MIN_ARTIFACT_BYTES, audio_codec: str = "aac") -> None:
        self.min_bytes = min_bytes
        self.audio_codec = audio_codec

    def command(
        self, video_path: str | Path, audio_path: str | Path, out_path: str | Path
    ) -> list[str]:
        return [
            "ffmpeg",
            "-y",
            "-i",
            str(video_path),
            "-i",
            str(audio_path),
            "-map",
            "0:v:0",
            "-map",
            "1:a:0",
            "-c:v",
            "copy",
            "-c:a",
            self.audio_codec,
            "-shortest",
            str(out_path),
        ]

    def mux(self, video_path: str | Path, audio_track: AudioSegment, out_path: str | Path) -> Path:
        out = Path(out_path)
        ensure_dir(out.parent)
        audio_wav = out.with_name(f"{out.stem}.audio.wav")
        try:
            audio_track.export(audio_wav, format="wav").close()
            run(self.command(video_path, audio_wav, out))
        except (RuntimeError, OSError) as e:
            raise MuxFailed() from e
        finally:
            audio_wav.unlink(missing_ok=True)

        verify_artifact(out, self.min_bytes)
        return out


def verify_artifact(path: Path, min_bytes: int = MIN_ARTIFACT_BYTES) -> None:
    size = path.stat().st_size if path.exists() else 0
    if size <= min_bytes:
        logger.error("Muxed output %s is implausibly small (%d bytes)", path, size)
        raise MuxFailed("the dubbed video came out empty")
    logger.info("Muxed %s (%.1f KB)", path, size / 1024)
