"""
Voice profile assignment for subtitle cues.

Short lines are always voiced as a child. Longer lines are drawn at random from
weighted profiles; questions and exclamations lean toward the child voice and
a small set of feminine Sinhala words leans toward the female voice. Pass a seed
or a ``random.Random`` to make the draw reproducible.
"""

import logging
import random
import re

from .models import VoiceProfile

logger = logging.getLogger("cuedub")

SCRIPT_RANGES = {
    "sinhala": re.compile(r"[\u0D80-\u0DFF]"),
    "latin": re.compile(r"[A-Za-zÀ-ÖØ-öø-ÿ]"),
    "any": re.compile(r"\S"),
}

FEMININE_MARKERS = ("මම", "මගේ", "ඔබ", "කියන්න", "එපා", "ආයුබෝවන්")

DEFAULT_WEIGHTS = {
    VoiceProfile.FEMALE: 0.45,
    VoiceProfile.MALE: 0.45,
    VoiceProfile.CHILD: 0.10,
}
FEMININE_WEIGHTS = {
    VoiceProfile.FEMALE: 0.60,
    VoiceProfile.MALE: 0.35,
    VoiceProfile.CHILD: 0.05,
}


class VoiceClassifier:
    def __init__(
        self,
        rng: random.Random | None = None,
        seed: int | None = None,
        script: str = "sinhala",
        short_threshold: int = 20,
        exclaim_child_probability: float = 0.6,
        weights: dict[VoiceProfile, float] | None = None,
        feminine_weights: dict[VoiceProfile, float] | None = None,
    ) -> None:
        if script not in SCRIPT_RANGES:
            raise ValueError(f"Unknown script {script!r}; expected one of {sorted(SCRIPT_RANGES)}")
        self.rng = rng or random.Random(seed)
        self.script = script
        self.short_threshold = short_threshold
        self.exclaim_child_probability = exclaim_child_probability
        self.weights = weights or DEFAULT_WEIGHTS
        self.feminine_weights = feminine_weights or FEMININE_WEIGHTS

    def script_length(self, text: str) -> int:
        """Number of characters of ``text`` inside the target script."""
        return len(SCRIPT_RANGES[self.script].findall(text or ""))

    def classify(self, text: str) -> VoiceProfile:
        if self.script_length(text) < self.short_threshold:
            return VoiceProfile.CHILD

        if ("?" in text or "!" in text) and self.rng.random() < self.exclaim_child_probability:
            return VoiceProfile.CHILD

        feminine = any(w in text for w in FEMININE_MARKERS)
        weights = self.feminine_weights if feminine else self.weights
        profiles = list(weights)
        profile = self.rng.choices(profiles, weights=[weights[p] for p in profiles], k=1)[0]
        logger.debug("Voice %s for %r (feminine markers: %s)", profile.value, text[:30], feminine)
        return profile
