"""
Tests for subtitle parsing.
"""

import logging

from cuedub.srt_utils import BARE, SRT, CueParser, detect_dialect, parse_cues, parse_time

SAMPLE_SRT = """1
00:00:01,000 --> 00:00:03,500
First line
second line

2
00:00:04,000 --> 00:00:05,250
Next cue

3
00:00:05,000 --> 00:00:06,000
Overlapping cue
"""


def test_parse_two_cue_srt():
    """Classic indexed input parses to start/end/text per cue."""
    text = "1\n00:00:00,000 --> 00:00:02,000\nHello\n\n2\n00:00:02,000 --> 00:00:04,000\nWorld\n"

    cues = parse_cues(text)

    assert len(cues) == 2
    assert (cues[0].start, cues[0].end, cues[0].text) == (0.0, 2.0, "Hello")
    assert (cues[1].start, cues[1].end, cues[1].text) == (2.0, 4.0, "World")


def test_parse_time_decimal_separators():
    assert parse_time("00:00:01,100") == parse_time("00:00:01.100") == 1.1
    assert parse_time("01:02:03,500") == 3723.5
    assert parse_time("00:01.250") == 1.25


def test_parse_time_malformed_is_zero(caplog):
    with caplog.at_level(logging.WARNING, logger="cuedub"):
        assert parse_time("aa:bb:cc,ddd") == 0.0
        assert parse_time("") == 0.0
    assert "Malformed timestamp" in caplog.text


def test_cue_count_matches_separator_lines():
    expected = sum(1 for ln in SAMPLE_SRT.splitlines() if "-->" in ln)

    cues = CueParser(SRT).parse(SAMPLE_SRT)

    assert len(cues) == expected == 3
    assert cues[0].text == "First line\nsecond line"
    # overlapping cues are kept as-is for the compositor to deal with
    assert cues[2].start < cues[1].end


def test_bare_dialect_joins_with_spaces_and_ignores_blank_lines():
    text = (
        "00:00:01,000 --> 00:00:02,000\n"
        "Hello\n"
        "\n"
        "there\n"
        "2\n"
        "00:00:03.000 --> 00:00:04.000\n"
        "World\n"
    )

    cues = CueParser(BARE).parse(text)

    assert [c.text for c in cues] == ["Hello there", "World"]
    assert cues[1].start == 3.0


def test_index_like_text_inside_srt_cue_is_kept():
    cues = CueParser(SRT).parse("1\n00:00:00,000 --> 00:00:01,000\n42\n")

    assert len(cues) == 1
    assert cues[0].text == "42"


def test_webvtt_header_and_settings():
    text = "WEBVTT\n\n00:01.000 --> 00:02.500 align:start position:10%\nHi there\n"

    cues = parse_cues(text)

    assert len(cues) == 1
    assert (cues[0].start, cues[0].end, cues[0].text) == (1.0, 2.5, "Hi there")


def test_out_of_order_cues_keep_source_order():
    text = (
        "1\n00:00:05,000 --> 00:00:06,000\nLater\n\n"
        "2\n00:00:01,000 --> 00:00:02,000\nEarlier\n"
    )

    cues = parse_cues(text)

    assert [c.text for c in cues] == ["Later", "Earlier"]
    assert [c.index for c in cues] == [1, 2]


def test_malformed_input_degrades_without_raising():
    assert parse_cues("") == []
    assert parse_cues("just some words\nwithout timing\n") == []

    cues = parse_cues("1\nnot a time --> also bad\nText\n")
    assert len(cues) == 1
    assert (cues[0].start, cues[0].end) == (0.0, 0.0)


def test_detect_dialect():
    assert detect_dialect(SAMPLE_SRT) == SRT
    bare = "00:00:01,000 --> 00:00:02,000\nHello\n00:00:02,000 --> 00:00:03,000\nBye"
    assert detect_dialect(bare) == BARE


def test_open_cue_emitted_at_end_of_input():
    cues = CueParser(SRT).parse("1\n00:00:00,000 --> 00:00:01,000\nNo trailing newline")

    assert len(cues) == 1
    assert cues[0].text == "No trailing newline"
