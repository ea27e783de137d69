"""
Asynchronous per-cue synthesis loop with a shared rate limiter.
"""

import asyncio
import logging
from collections.abc import Callable

from tqdm import tqdm

from .models import AudioClip, Cue
from .tts import SpeechSynthesizer
from .voices import VoiceClassifier

logger = logging.getLogger("cuedub")

DEFAULT_MAX_CUES = 50
DEFAULT_CALL_DELAY = 0.3  # seconds between successive TTS calls


class RateLimiter:
    """Enforces a minimum spacing between successive call starts."""

    def __init__(self, min_interval: float) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._lock = asyncio.Lock()
        self._last: float | None = None

    async def wait(self) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            now = loop.time()
            if self._last is not None:
                delay = self._last + self.min_interval - now
                if delay > 0:
                    await asyncio.sleep(delay)
                    now = loop.time()
            self._last = now


async def synthesize_cues_async(
    cues: list[Cue],
    synthesizer: SpeechSynthesizer,
    classifier: VoiceClassifier,
    *,
    max_cues: int | None = DEFAULT_MAX_CUES,
    call_delay: float = DEFAULT_CALL_DELAY,
    timeout: float = 30.0,
    max_concurrent: int = 1,
    on_progress: Callable[[int, int], None] | None = None,
    progress_bar: bool = True,
) -> list[AudioClip]:
    """Synthesize one clip per cue, returned in cue order.

    Cues past ``max_cues`` and calls that fail or exceed ``timeout`` come back
    as clips with empty samples. A timed-out call is cancelled, so it frees its
    concurrency slot at once. ``on_progress(done, total)`` is called with
    ``done=0`` before the first call; ``total`` is the number of cues actually
    sent to the backend.
    """
    # classify up front so a seeded classifier is independent of completion order
    profiles = [classifier.classify(c.text) for c in cues]
    clips: list[AudioClip | None] = [None] * len(cues)

    limit = len(cues) if max_cues is None else max(0, min(max_cues, len(cues)))
    for i in range(limit, len(cues)):
        clips[i] = AudioClip(samples=b"", cue=cues[i], profile=profiles[i])
    if limit < len(cues):
        logger.warning("Cue cap %d reached: %d cue(s) will stay silent", limit, len(cues) - limit)

    limiter = RateLimiter(call_delay)
    semaphore = asyncio.Semaphore(max(1, max_concurrent))
    done = 0

    if on_progress:
        on_progress(0, limit)

    with tqdm(total=limit, desc="TTS cues", disable=not progress_bar) as bar:

        async def process_single(i: int) -> None:
            nonlocal done
            cue, profile = cues[i], profiles[i]
            async with semaphore:
                await limiter.wait()
                try:
                    clip = await asyncio.wait_for(synthesizer.synthesize(cue, profile), timeout)
                except asyncio.TimeoutError:
                    logger.warning("TTS timed out after %.1fs for cue %d", timeout, cue.index)
                    clip = AudioClip(samples=b"", cue=cue, profile=profile)
            clips[i] = clip
            done += 1
            bar.update(1)
            if on_progress:
                on_progress(done, limit)

        await asyncio.gather(*(process_single(i) for i in range(limit)))

    failures = [c.cue.index for c in clips[:limit] if c is not None and c.is_silent]
    if failures:
        logger.warning(
            "TTS completed with %d silent cue(s) (rendered as silence): %s", len(failures), failures
        )
    return [c for c in clips if c is not None]


def synthesize_cues(
    cues: list[Cue], synthesizer: SpeechSynthesizer, classifier: VoiceClassifier, **kwargs
) -> list[AudioClip]:
    """Sync wrapper for ``synthesize_cues_async``.

    Starts its own event loop, so it cannot be called from a running one; await
    ``synthesize_cues_async`` there instead.
    """
    return asyncio.run(synthesize_cues_async(cues, synthesizer, classifier, **kwargs))
