"""
Command-line interface: dub one video from a subtitle file.
"""

import argparse
import logging
import sys
from dataclasses import replace

from .config import Settings, load_env_file
from .errors import DubError
from .models import ProgressEvent, Stage
from .pipeline import dub_from_sources
from .srt_utils import AUTO, DIALECTS
from .timeline import OverlapPolicy

logger = logging.getLogger("cuedub")


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Dub a video with speech synthesized from its subtitles")

    # IO
    ap.add_argument("--video", required=True, help="Video file path or http(s) URL")
    ap.add_argument("--subs", required=True, help="Subtitle file (.srt/.vtt/bare) path or URL")
    ap.add_argument("--output", default="output_dubbed.mp4")
    ap.add_argument("--dialect", choices=[AUTO, *DIALECTS], default=None)

    # TTS
    ap.add_argument("--tts-provider", choices=["google", "openai"], default=None)
    ap.add_argument("--language", default=None, help="TTS language code (google provider)")
    ap.add_argument("--max-cues", type=int, default=None, help="Cues past this cap stay silent")
    ap.add_argument(
        "--call-delay-ms", type=int, default=None, help="Minimum spacing between TTS calls"
    )
    ap.add_argument("--timeout", type=float, default=None, help="Per-call TTS timeout (sec)")
    ap.add_argument("--max-concurrent", type=int, default=None, help="Parallel TTS calls")
    ap.add_argument("--seed", type=int, default=None, help="Seed for voice assignment")
    ap.add_argument("--script", choices=["sinhala", "latin", "any"], default=None)

    # Compositing
    ap.add_argument("--overlap-policy", choices=[p.value for p in OverlapPolicy], default=None)
    ap.add_argument("--mixer", choices=["pydub", "ffmpeg"], default=None)
    ap.add_argument("--no-progress", action="store_true", help="Hide the TTS progress bar")

    # Logging
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return ap.parse_args(argv)


def settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    """Command line flags override environment settings."""
    overrides = {
        "dialect": args.dialect,
        "tts_provider": args.tts_provider,
        "language": args.language,
        "max_cues": args.max_cues,
        "call_delay": None if args.call_delay_ms is None else args.call_delay_ms / 1000.0,
        "timeout": args.timeout,
        "max_concurrent": args.max_concurrent,
        "voice_seed": args.seed,
        "script": args.script,
        "overlap_policy": args.overlap_policy,
        "mixer": args.mixer,
    }
    settings = replace(base, **{k: v for k, v in overrides.items() if v is not None})
    if args.no_progress:
        settings = replace(settings, progress_bar=False)
    return settings


def log_event(event: ProgressEvent) -> None:
    if event.stage is Stage.SYNTHESIZING:
        logger.debug("Stage: %s", event)
    else:
        logger.info("Stage: %s", event)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    load_env_file()
    args = parse_args(argv)
    setup_logging(args.verbose)
    settings = settings_from_args(args, Settings.from_env())

    try:
        dub_from_sources(args.video, args.subs, args.output, settings=settings, on_event=log_event)
    except DubError as e:
        print(f"Dubbing failed ({e.kind}): {e.reason}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
