"""
Subtitle parsing: SRT, bare-timestamp and WebVTT text into ordered cues.
"""

import logging
import re
from enum import Enum

from .models import Cue

logger = logging.getLogger("cuedub")

SEPARATOR = "-->"

SRT = "srt"
BARE = "bare"
AUTO = "auto"
DIALECTS = (SRT, BARE)

_TS_RE = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{1,2})(?:[.,](\d{1,3}))?$")
_INDEX_RE = re.compile(r"^\d+$")
_BLOCK_GAP_RE = re.compile(r"\n[ \t]*\n")


class _State(Enum):
    SEEKING = "seeking"
    IN_CUE = "in_cue"


def parse_time(ts: str) -> float:
    """Convert ``HH:MM:SS,mmm`` / ``HH:MM:SS.mmm`` (or ``MM:SS.mmm``) to seconds.

    Malformed input yields 0.0 and a warning instead of an exception.
    """
    m = _TS_RE.match((ts or "").strip())
    if not m:
        logger.warning("Malformed timestamp %r, using 0.0", ts)
        return 0.0
    h, mm, ss, frac = m.groups()
    seconds = float(f"{ss}.{frac}") if frac else float(ss)
    return int(h or 0) * 3600 + int(mm) * 60 + seconds


def detect_dialect(text: str) -> str:
    """Indexed SRT separates cues with blank lines; the bare dialect does not."""
    if _BLOCK_GAP_RE.search((text or "").strip().replace("\r\n", "\n")):
        return SRT
    return BARE


class CueParser:
    """Line-oriented cue parser.

    ``srt``: a blank line closes the open cue and text lines are joined with
    newlines. ``bare``: blank lines are ignored, a cue stays open until the next
    timestamp line, index lines are dropped and text is joined with spaces.
    """

    def __init__(self, dialect: str = SRT) -> None:
        if dialect not in DIALECTS:
            raise ValueError(f"Unknown subtitle dialect: {dialect!r}")
        self.dialect = dialect
        self.joiner = "\n" if dialect == SRT else " "

    def parse(self, text: str) -> list[Cue]:
        cues: list[Cue] = []
        state = _State.SEEKING
        start = end = 0.0
        lines: list[str] = []

        def emit() -> None:
            cues.append(Cue(index=len(cues) + 1, start=start, end=end, text=self.joiner.join(lines)))

        for raw in (text or "").splitlines():
            line = raw.lstrip("\ufeff").strip()
            if not line:
                if state is _State.IN_CUE and self.dialect == SRT:
                    emit()
                    state = _State.SEEKING
                continue

            if SEPARATOR in line:
                if state is _State.IN_CUE:
                    emit()
                start, end = _parse_range(line)
                lines = []
                state = _State.IN_CUE
                continue

            if _INDEX_RE.match(line) and (state is _State.SEEKING or self.dialect == BARE):
                continue

            if state is _State.IN_CUE:
                lines.append(line)
            else:
                logger.debug("Skipping line outside a cue: %r", line[:40])

        if state is _State.IN_CUE:
            emit()
        return cues


def _parse_range(line: str) -> tuple[float, float]:
    left, _, right = line.partition(SEPARATOR)
    # WebVTT may put cue settings after the end timestamp
    parts = right.split()
    return parse_time(left), parse_time(parts[0] if parts else "")


def parse_cues(text: str, dialect: str = AUTO) -> list[Cue]:
    """Parse subtitle text, auto-detecting the dialect unless one is given."""
    if dialect == AUTO:
        dialect = detect_dialect(text)
    cues = CueParser(dialect).parse(text)
    logger.debug("Parsed %d cues (%s dialect)", len(cues), dialect)
    return cues
