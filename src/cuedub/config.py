"""
Runtime settings loaded from the environment (and an optional .env file).
"""

import logging
import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger("cuedub")

ENV_PREFIX = "CUEDUB_"


def load_env_file() -> None:
    """Load .env from the project root, falling back to the current directory."""
    project_root = pathlib.Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
    else:
        load_dotenv(override=False)


def _get(name: str, default: str | None = None) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    return default if value is None or value == "" else value


def _get_int(name: str, default: int | None) -> int | None:
    raw = _get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s%s=%r (not an integer)", ENV_PREFIX, name, raw)
        return default


def _get_float(name: str, default: float) -> float:
    raw = _get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s%s=%r (not a number)", ENV_PREFIX, name, raw)
        return default


@dataclass
class Settings:
    # synthesis
    tts_provider: str = "google"  # google | openai
    language: str = "si"
    openai_api_key: str | None = None
    openai_tts_model: str = "gpt-4o-mini-tts"
    voice_instructions: str | None = None
    max_cues: int | None = 50
    call_delay: float = 0.3  # seconds
    timeout: float = 30.0  # seconds per TTS call
    max_concurrent: int = 1
    # parsing / voices
    dialect: str = "auto"
    script: str = "sinhala"
    voice_seed: int | None = None
    # compositing / muxing
    overlap_policy: str = "additive"
    mixer: str = "pydub"  # pydub | ffmpeg
    sample_rate: int = 44100
    min_artifact_bytes: int = 1024
    fallback_duration: float = 60.0
    progress_bar: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``CUEDUB_*`` variables (plus ``OPENAI_API_KEY``)."""
        d = cls()
        return cls(
            tts_provider=_get("TTS_PROVIDER", d.tts_provider),
            language=_get("LANGUAGE", d.language),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_tts_model=_get("OPENAI_TTS_MODEL", d.openai_tts_model),
            voice_instructions=os.getenv("OPENAI_TTS_INSTRUCTIONS"),
            max_cues=_get_int("MAX_CUES", d.max_cues),
            call_delay=_get_float("CALL_DELAY", d.call_delay),
            timeout=_get_float("TIMEOUT", d.timeout),
            max_concurrent=_get_int("MAX_CONCURRENT", d.max_concurrent),
            dialect=_get("DIALECT", d.dialect),
            script=_get("SCRIPT", d.script),
            voice_seed=_get_int("VOICE_SEED", d.voice_seed),
            overlap_policy=_get("OVERLAP_POLICY", d.overlap_policy),
            mixer=_get("MIXER", d.mixer),
            sample_rate=_get_int("SAMPLE_RATE", d.sample_rate),
            min_artifact_bytes=_get_int("MIN_ARTIFACT_BYTES", d.min_artifact_bytes),
            fallback_duration=_get_float("FALLBACK_DURATION", d.fallback_duration),
            progress_bar=_get("PROGRESS_BAR", "1") not in ("0", "false", "no"),
        )
