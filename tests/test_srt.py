"""Tests for the SRT serializer, strict parser, and lenient parser.

WHY: SRT is the storage format: what the editor saves is parsed back on
every load, and text returned by the translation model is parsed with
the lenient reader. A parser that throws on one bad block would lose a
whole video's subtitles.

HOW: Tests are organized by class:
  - TestFormatSrt: exact output layout, renumbering, empty input
  - TestParseSrt: round trip, id preservation, line endings, BOM, resilience
  - TestParseSrtLenient: separators, optional id line, renumbering
  - TestSRTFormatter / TestWordsToSrt: registry formatter and shortcut

RULES:
- SAMPLE_SRT from conftest is exactly format_srt(SAMPLE_BLOCKS)
- Malformed input never raises; it only shrinks the result
"""

from __future__ import annotations

import pytest

from captionize.core.models import CaptionBlock, Word
from captionize.formatters import FORMATTERS
from captionize.formatters.srt import (
    SRT_MEDIA_TYPE,
    SRTFormatter,
    format_srt,
    parse_srt,
    parse_srt_lenient,
    words_to_srt,
)


class TestFormatSrt:
    def test_exact_layout(self, sample_blocks, sample_srt):
        assert format_srt(sample_blocks) == sample_srt

    def test_empty_list_is_empty_string(self):
        assert format_srt([]) == ""

    def test_keeps_block_ids_by_default(self):
        blocks = [CaptionBlock(5, 0, 1000, "a"), CaptionBlock(9, 1000, 2000, "b")]
        assert format_srt(blocks).split("\n\n")[1].startswith("9\n")

    def test_renumber_ids(self):
        blocks = [CaptionBlock(5, 0, 1000, "a"), CaptionBlock(9, 1000, 2000, "b")]
        text = format_srt(blocks, renumber_ids=True)
        assert [chunk.split("\n")[0] for chunk in text.split("\n\n")] == ["1", "2"]
        # The caller's blocks are untouched
        assert blocks[0].id == 5

    def test_hours_past_a_day(self):
        text = format_srt([CaptionBlock(1, 90_000_000, 90_001_000, "late")])
        assert "25:00:00,000 --> 25:00:01,000" in text


class TestParseSrt:
    def test_round_trip(self, sample_blocks):
        assert parse_srt(format_srt(sample_blocks)) == sample_blocks

    def test_preserves_source_ids(self):
        text = "7\n00:00:01,000 --> 00:00:02,000\nA\n\n9\n00:00:03,000 --> 00:00:04,000\nB\n"
        assert [b.id for b in parse_srt(text)] == [7, 9]

    def test_crlf_line_endings(self, sample_srt, sample_blocks):
        assert parse_srt(sample_srt.replace("\n", "\r\n")) == sample_blocks

    def test_leading_bom_is_ignored(self, sample_srt, sample_blocks):
        assert parse_srt("\ufeff" + sample_srt) == sample_blocks

    def test_missing_timestamp_line_is_skipped(self):
        text = (
            "1\n00:00:00,000 --> 00:00:01,000\nGood block\n\n"
            "2\nNo timestamp here\nStill text\n"
        )
        blocks = parse_srt(text)
        assert blocks == [CaptionBlock(1, 0, 1000, "Good block")]

    def test_non_numeric_id_is_skipped(self):
        text = "x\n00:00:00,000 --> 00:00:01,000\nBad id\n\n2\n00:00:02,000 --> 00:00:03,000\nOk\n"
        assert [b.text for b in parse_srt(text)] == ["Ok"]

    def test_block_without_text_is_skipped(self):
        text = "1\n00:00:00,000 --> 00:00:01,000\n\n2\n00:00:02,000 --> 00:00:03,000\nOk"
        assert [b.id for b in parse_srt(text)] == [2]

    def test_period_separator_is_rejected(self):
        assert parse_srt("1\n00:00:00.000 --> 00:00:01.000\nVTT style") == []

    def test_garbage_returns_empty_list(self):
        assert parse_srt("this is not a subtitle file") == []
        assert parse_srt("") == []

    def test_extra_blank_lines_between_blocks(self, sample_blocks):
        text = format_srt(sample_blocks).replace("\n\n", "\n\n  \n\n") + "\n\n\n"
        assert parse_srt(text) == sample_blocks

    def test_multiline_text_is_kept(self):
        text = "1\n00:00:00,000 --> 00:00:01,000\nline one\nline two\n"
        assert parse_srt(text)[0].text == "line one\nline two"

    @pytest.mark.parametrize("gap", ["\n\n\n", "\n\n\n\n\n", "\n \n\t\n", "\r\n\r\n\r\n"])
    def test_any_run_of_blank_lines_separates_blocks(self, sample_blocks, gap):
        text = format_srt(sample_blocks).replace("\n\n", gap)
        assert parse_srt(text) == sample_blocks


class TestParseSrtLenient:
    def test_accepts_period_separator(self):
        blocks = parse_srt_lenient("1\n00:00:00.500 --> 00:00:01.250\nHello")
        assert blocks == [CaptionBlock(1, 500, 1250, "Hello")]

    def test_renumbers_from_one(self):
        text = "7\n00:00:01,000 --> 00:00:02,000\nA\n\n9\n00:00:03,000 --> 00:00:04,000\nB\n"
        assert [b.id for b in parse_srt_lenient(text)] == [1, 2]

    def test_id_line_is_optional(self):
        text = "00:00:01,000 --> 00:00:02,000\nNo id\n\n00:00:03,000-->00:00:04,000\nTight arrow"
        blocks = parse_srt_lenient(text)
        assert [(b.id, b.text) for b in blocks] == [(1, "No id"), (2, "Tight arrow")]

    def test_cue_settings_are_ignored(self):
        blocks = parse_srt_lenient("1\n00:00:01.000 --> 00:00:02.000 align:start line:90%\nStyled")
        assert blocks[0].start_ms == 1000
        assert blocks[0].end_ms == 2000
        assert blocks[0].text == "Styled"

    def test_skips_malformed_and_renumbers_the_rest(self):
        text = (
            "1\n00:00:00,000 --> 00:00:01,000\nfirst\n\n"
            "2\nbroken\n\n"
            "3\n00:00:02,000 --> 00:00:03,000\nthird\n"
        )
        assert [(b.id, b.text) for b in parse_srt_lenient(text)] == [(1, "first"), (2, "third")]

    def test_reads_strict_output(self, sample_blocks):
        assert parse_srt_lenient(format_srt(sample_blocks)) == sample_blocks

    def test_odd_blank_line_run_keeps_id_lines_apart(self):
        text = "1\n00:00:00,000 --> 00:00:01,000\nOne\n\n\n2\n00:00:02,000 --> 00:00:03,000\nTwo\n"
        assert parse_srt_lenient(text) == [
            CaptionBlock(1, 0, 1000, "One"),
            CaptionBlock(2, 2000, 3000, "Two"),
        ]


class TestSRTFormatter:
    def test_registered(self):
        assert FORMATTERS["srt"] is SRTFormatter

    def test_output(self, sample_blocks, sample_srt):
        output = SRTFormatter().format(sample_blocks)
        assert output.suffix == ".srt"
        assert output.media_type == SRT_MEDIA_TYPE
        assert output.content == sample_srt
        assert SRTFormatter().name == "SubRip (SRT)"

    def test_formatter_renumbers(self):
        output = SRTFormatter().format([CaptionBlock(4, 0, 10, "x")])
        assert output.content.startswith("1\n")


class TestWordsToSrt:
    def test_segments_then_formats(self):
        words = [
            Word("Hello", 0, 400),
            Word("world", 420, 900),
            Word("this", 2000, 2300),
            Word("is", 2320, 2500),
            Word("fine", 2520, 3000),
        ]
        assert words_to_srt(words) == (
            "1\n00:00:00,000 --> 00:00:00,900\nHello world\n\n"
            "2\n00:00:02,000 --> 00:00:03,000\nthis is fine"
        )

    def test_no_words_is_empty(self):
        assert words_to_srt([]) == ""
