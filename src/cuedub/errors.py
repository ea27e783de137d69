"""
Error taxonomy for dub jobs.

Every error carries a short ``reason`` that is safe to show to the end user.
Diagnostics stay in the log.
"""


class DubError(Exception):
    """Base class for job-level failures."""

    kind = "error"
    default_reason = "processing failed"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class ParseDegraded(DubError):
    """No usable cues were recovered from the subtitle text."""

    kind = "parse_degraded"
    default_reason = "no cues found"


class SynthesisFailed(DubError):
    """A single cue could not be synthesized. Absorbed as silence."""

    kind = "synthesis_failed"
    default_reason = "speech synthesis failed"


class CompositingFailed(DubError):
    kind = "compositing_failed"
    default_reason = "could not build the dubbed audio track"


class MuxFailed(DubError):
    kind = "mux_failed"
    default_reason = "could not write the dubbed video"


class UpstreamFailed(DubError):
    """Source media or subtitles could not be retrieved."""

    kind = "upstream_failed"
    default_reason = "could not retrieve the input files"


class ConfigInvalid(DubError):
    """Settings name an unknown option or lack a required credential."""

    kind = "config_invalid"
    default_reason = "invalid configuration"
