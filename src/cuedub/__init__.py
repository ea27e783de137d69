"""
cuedub - Subtitle-timed video dubbing.

Pipeline:
- Parsing SRT, bare-timestamp and WebVTT subtitles into cues
- Assigning a child/female/male voice profile per cue
- Synthesizing speech per cue (Google Translate TTS or OpenAI TTS)
- Compositing clips onto a silent track of the video's length
- Replacing the video's audio stream with the dubbed track
"""

__version__ = "0.1.0"
