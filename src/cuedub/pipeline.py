"""
End-to-end dub job: parse -> classify/synthesize -> composite -> mux.

Each job runs in its own temporary directory, which is removed on every exit
path. Stage completion is reported through an optional ``on_event`` callback.
"""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlparse

import httpx

from . import tts
from .config import Settings
from .errors import (
    CompositingFailed,
    ConfigInvalid,
    DubError,
    MuxFailed,
    ParseDegraded,
    UpstreamFailed,
)
from .fetch import fetch_to, read_subtitles
from .io_ffmpeg import FfmpegMixer, FfmpegMuxer, Muxer, probe_duration
from .models import DubJob, ProgressEvent, Stage, Timeline
from .srt_utils import parse_cues
from .timeline import PydubMixer, TimelineCompositor
from .tts import SpeechSynthesizer, make_synth_google, make_synth_openai
from .tts_async import synthesize_cues_async
from .voices import VoiceClassifier

logger = logging.getLogger("cuedub")

EventCallback = Callable[[ProgressEvent], None]

_STAGE_ERRORS = {
    Stage.COMPOSITING: CompositingFailed,
    Stage.MUXING: MuxFailed,
}


def build_synthesizer(settings: Settings) -> SpeechSynthesizer:
    if settings.tts_provider == "openai":
        if tts.AsyncOpenAI is None:
            raise ConfigInvalid("openai package not installed. Install with: pip install openai")
        if not settings.openai_api_key:
            raise ConfigInvalid("OPENAI_API_KEY is not set. Put it in .env or environment.")
        backend = make_synth_openai(
            tts.AsyncOpenAI(api_key=settings.openai_api_key),
            settings.openai_tts_model,
            instructions=settings.voice_instructions,
        )
    elif settings.tts_provider == "google":
        backend = make_synth_google(settings.language)
    else:
        raise ConfigInvalid(f"unknown TTS provider: {settings.tts_provider}")
    return SpeechSynthesizer(backend, timeout=settings.timeout)


def build_classifier(settings: Settings) -> VoiceClassifier:
    try:
        return VoiceClassifier(seed=settings.voice_seed, script=settings.script)
    except ValueError as e:
        raise ConfigInvalid(f"unknown script: {settings.script}") from e


def build_compositor(settings: Settings) -> TimelineCompositor:
    if settings.mixer not in ("pydub", "ffmpeg"):
        raise ConfigInvalid(f"unknown mixer: {settings.mixer}")
    mixer = FfmpegMixer() if settings.mixer == "ffmpeg" else PydubMixer()
    try:
        return TimelineCompositor(
            mixer=mixer, overlap_policy=settings.overlap_policy, sample_rate=settings.sample_rate
        )
    except ValueError as e:
        raise ConfigInvalid(f"unknown overlap policy: {settings.overlap_policy}") from e


async def run_job_async(
    video_path: str | Path,
    subtitle_text: str,
    output_path: str | Path,
    *,
    settings: Settings | None = None,
    synthesizer: SpeechSynthesizer | None = None,
    classifier: VoiceClassifier | None = None,
    compositor: TimelineCompositor | None = None,
    muxer: Muxer | None = None,
    probe: Callable[[Path, float], float] = probe_duration,
    on_event: EventCallback | None = None,
) -> DubJob:
    """Dub ``video_path`` with speech for ``subtitle_text`` and write ``output_path``.

    Per-cue synthesis failures become silence. Configuration, parse,
    compositing and mux failures raise a ``DubError`` after a ``failed`` event
    has been emitted. Probing, compositing and muxing run in worker threads.
    """
    settings = settings or Settings()
    job = DubJob(
        video_path=Path(video_path), subtitle_text=subtitle_text, output_path=Path(output_path)
    )

    def emit(event: ProgressEvent) -> None:
        job.advance(event.stage)
        logger.debug("[job] %s", event)
        if on_event:
            on_event(event)

    try:
        synthesizer = synthesizer or build_synthesizer(settings)
        classifier = classifier or build_classifier(settings)
        compositor = compositor or build_compositor(settings)
        muxer = muxer or FfmpegMuxer(min_bytes=settings.min_artifact_bytes)

        with tempfile.TemporaryDirectory(prefix="cuedub-job-") as tmp:
            job.cues = parse_cues(subtitle_text, settings.dialect)
            if not job.cues:
                raise ParseDegraded()
            emit(ProgressEvent(Stage.PARSED, done=len(job.cues), total=len(job.cues)))

            fallback = max(c.end for c in job.cues) or settings.fallback_duration
            job.duration = await asyncio.to_thread(probe, job.video_path, fallback)
            logger.info("[dur] video = %.3fs, %d cue(s)", job.duration, len(job.cues))

            clips = await synthesize_cues_async(
                job.cues,
                synthesizer,
                classifier,
                max_cues=settings.max_cues,
                call_delay=settings.call_delay,
                timeout=settings.timeout,
                max_concurrent=settings.max_concurrent,
                on_progress=lambda done, total: emit(
                    ProgressEvent(Stage.SYNTHESIZING, done=done, total=total)
                ),
                progress_bar=settings.progress_bar,
            )
            job.timeline = Timeline(total_duration=job.duration, clips=tuple(clips))

            emit(ProgressEvent(Stage.COMPOSITING))
            track = await asyncio.to_thread(
                compositor.composite, job.timeline.total_duration, job.timeline.clips
            )

            emit(ProgressEvent(Stage.MUXING))
            suffix = job.output_path.suffix or ".mp4"
            artifact = await asyncio.to_thread(
                muxer.mux, job.video_path, track, Path(tmp) / f"dubbed{suffix}"
            )
            del track
            job.output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(artifact, job.output_path)
            job.artifact_path = job.output_path

        emit(ProgressEvent(Stage.DONE))
        logger.info("Done (dubbed) -> %s", job.output_path)
        return job
    except DubError as e:
        logger.error("Job failed at %s: %s", job.stage.value if job.stage else "start", e.reason)
        emit(ProgressEvent(Stage.FAILED, reason=e.reason))
        raise
    except Exception as e:
        logger.exception("Unexpected failure at %s", job.stage.value if job.stage else "start")
        err = _STAGE_ERRORS.get(job.stage, DubError)()
        emit(ProgressEvent(Stage.FAILED, reason=err.reason))
        raise err from e
    finally:
        job.release()


def run_job(
    video_path: str | Path, subtitle_text: str, output_path: str | Path, **kwargs
) -> DubJob:
    """Sync wrapper for ``run_job_async``; not callable from a running event loop."""
    return asyncio.run(run_job_async(video_path, subtitle_text, output_path, **kwargs))


def dub_from_sources(
    video: str | Path,
    subtitles: str | Path,
    output_path: str | Path,
    *,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
    on_event: EventCallback | None = None,
    **kwargs,
) -> DubJob:
    """Retrieve both inputs (local paths or URLs), then run the job."""
    with tempfile.TemporaryDirectory(prefix="cuedub-src-") as tmp:
        try:
            suffix = Path(urlparse(str(video)).path).suffix or ".mp4"
            video_path = fetch_to(video, Path(tmp) / f"source{suffix}", client=client)
            text = read_subtitles(subtitles, tmp, client=client)
        except UpstreamFailed as e:
            if on_event:
                on_event(ProgressEvent(Stage.FAILED, reason=e.reason))
            raise
        return run_job(
            video_path, text, output_path, settings=settings, on_event=on_event, **kwargs
        )
