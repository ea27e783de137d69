"""
Text-to-speech backends (Google Translate web TTS, OpenAI) and the
never-raising synthesis adapter.
"""

import logging
from collections.abc import Awaitable, Callable

import httpx

from .errors import SynthesisFailed
from .models import AudioClip, Cue, VoiceProfile

logger = logging.getLogger("cuedub")

# Optional OpenAI SDK
try:
    from openai import AsyncOpenAI
except ImportError:
    AsyncOpenAI = None

# async (text, profile, timeout seconds) -> encoded audio bytes
SpeechBackend = Callable[[str, VoiceProfile, float], Awaitable[bytes]]

GOOGLE_TTS_URL = "https://translate.google.com/translate_tts"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

DEFAULT_OPENAI_VOICES = {
    VoiceProfile.CHILD: "shimmer",
    VoiceProfile.FEMALE: "nova",
    VoiceProfile.MALE: "onyx",
}


async def google_tts_speak(
    client: httpx.AsyncClient, text: str, language: str, speed: float, timeout: float
) -> bytes:
    """Synthesize speech with the Google Translate TTS endpoint (MP3 bytes)."""
    params = {
        "ie": "UTF-8",
        "q": text,
        "tl": language,
        "total": "1",
        "idx": "0",
        "textlen": str(len(text)),
        "client": "tw-ob",
        "prev": "input",
        "ttsspeed": f"{speed:.1f}",
    }
    r = await client.get(
        GOOGLE_TTS_URL, params=params, headers={"User-Agent": USER_AGENT}, timeout=timeout
    )
    ctype = r.headers.get("content-type", "")
    if r.status_code != 200 or not ctype.startswith(("audio/", "application/octet-stream")):
        raise SynthesisFailed(f"Google TTS failed: {r.status_code} {ctype}")
    if not r.content:
        raise SynthesisFailed("Google TTS returned an empty body")
    return r.content


async def tts_speak_openai(
    client: AsyncOpenAI,
    text: str,
    model: str,
    voice: str,
    speed: float,
    timeout: float,
    instructions: str | None = None,
) -> bytes:
    """Synthesize speech using OpenAI TTS (WAV bytes)."""
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")

    kwargs = {}
    if instructions:
        kwargs["instructions"] = instructions
    resp = await client.audio.speech.create(
        model=model,
        voice=voice,
        input=text,
        speed=speed,
        response_format="wav",
        timeout=timeout,
        **kwargs,
    )
    return resp.content


def make_synth_google(
    language: str = "si", client: httpx.AsyncClient | None = None
) -> SpeechBackend:
    """Create Google Translate TTS synthesis function.

    Without an explicit client each call opens and closes its own.
    """

    async def _synth(text: str, profile: VoiceProfile, timeout: float) -> bytes:
        if client is not None:
            return await google_tts_speak(client, text, language, profile.rate, timeout)
        async with httpx.AsyncClient(follow_redirects=True) as http:
            return await google_tts_speak(http, text, language, profile.rate, timeout)

    return _synth


def make_synth_openai(
    client: AsyncOpenAI,
    tts_model: str = "gpt-4o-mini-tts",
    voices: dict[VoiceProfile, str] | None = None,
    instructions: str | None = None,
) -> SpeechBackend:
    """Create OpenAI TTS synthesis function; each profile gets its own voice."""
    voice_map = voices or DEFAULT_OPENAI_VOICES

    async def _synth(text: str, profile: VoiceProfile, timeout: float) -> bytes:
        return await tts_speak_openai(
            client, text, tts_model, voice_map[profile], profile.rate, timeout, instructions
        )

    return _synth


class SpeechSynthesizer:
    """Turns a cue into an ``AudioClip``.

    Any backend failure (network, quota, bad response) is logged and converted
    into a clip with empty samples; nothing is raised to the caller. Backends
    are coroutines, so a caller-side timeout cancels the request itself.
    """

    def __init__(self, backend: SpeechBackend, timeout: float = 30.0) -> None:
        self.backend = backend
        self.timeout = timeout

    async def synthesize(self, cue: Cue, profile: VoiceProfile) -> AudioClip:
        text = (cue.text or "").strip()
        if not text:
            return AudioClip(samples=b"", cue=cue, profile=profile)
        try:
            samples = await self.backend(text, profile, self.timeout)
        except Exception as e:
            logger.warning("TTS failed for cue %d (%s): %s", cue.index, profile.value, e)
            samples = b""
        return AudioClip(samples=bytes(samples or b""), cue=cue, profile=profile)
