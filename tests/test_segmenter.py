"""Tests for word segmentation and greedy line wrapping.

WHY: The segmenter decides where every caption starts and ends. An
off-by-one at a threshold shows up on screen as captions that flash by
or linger, so the boundaries are pinned down exactly.

HOW: Tests are organized by class, one per concern:
  - TestBuildSegmentLines: greedy packing at the 42-character limit
  - TestPauseBreak / TestDurationBreak / TestLengthBreak: each break rule
  - TestPolicies: named policies, custom policies, unknown names
  - TestSegmentWordsEdgeCases: empty input, ids, overlapping words
  - TestEndToEnd: the full "Hello world / this is fine" scenario

RULES:
- Thresholds are strict: a value equal to the limit never breaks
- Words are built with make_words or inline Word(...) values
"""

from __future__ import annotations

import pytest

from captionize.core.models import CaptionBlock, Word
from captionize.core.segmenter import (
    BASIC_POLICY,
    MAX_CHARS_PER_LINE,
    POLICIES,
    STORAGE_POLICY,
    SegmentationPolicy,
    build_segment_lines,
    resolve_policy,
    segment_words,
)


def make_words(texts, start_ms=0, step_ms=300, length_ms=250):
    """Evenly spaced words: word i starts at start_ms + i * step_ms."""
    return [
        Word(text=t, start_ms=start_ms + i * step_ms, end_ms=start_ms + i * step_ms + length_ms)
        for i, t in enumerate(texts)
    ]


# ---------------------------------------------------------------------------
# TestBuildSegmentLines
# ---------------------------------------------------------------------------


class TestBuildSegmentLines:
    """build_segment_lines() packs words greedily into <= 42-char lines."""

    def test_exactly_42_chars_stays_on_one_line(self):
        words = [Word("a" * 20, 0, 1), Word("b" * 21, 1, 2)]
        text = build_segment_lines(words)
        assert text == "a" * 20 + " " + "b" * 21
        assert len(text) == MAX_CHARS_PER_LINE

    def test_43_chars_wraps_to_two_lines(self):
        words = [Word("a" * 20, 0, 1), Word("b" * 22, 1, 2)]
        assert build_segment_lines(words) == "a" * 20 + "\n" + "b" * 22

    def test_long_word_sits_on_its_own_line_untruncated(self):
        long_word = "x" * 50
        words = [Word("hi", 0, 1), Word(long_word, 1, 2), Word("yo", 2, 3)]
        assert build_segment_lines(words) == "hi\n{}\nyo".format(long_word)

    def test_several_lines(self):
        words = make_words(["abcdefghi"] * 9)
        lines = build_segment_lines(words).split("\n")
        # 4 nine-letter words plus 3 spaces = 39; a fifth would make 49
        assert lines == ["abcdefghi abcdefghi abcdefghi abcdefghi"] * 2 + ["abcdefghi"]

    def test_custom_line_limit(self):
        words = make_words(["one", "two", "three"])
        assert build_segment_lines(words, max_line_chars=7) == "one two\nthree"

    def test_empty_input_is_empty_string(self):
        assert build_segment_lines([]) == ""


# ---------------------------------------------------------------------------
# TestPauseBreak
# ---------------------------------------------------------------------------


class TestPauseBreak:
    """A gap longer than 700ms between words starts a new block."""

    def test_900ms_pause_splits(self):
        words = [Word("a", 0, 500), Word("b", 1400, 1900)]
        assert segment_words(words) == [
            CaptionBlock(id=1, start_ms=0, end_ms=500, text="a"),
            CaptionBlock(id=2, start_ms=1400, end_ms=1900, text="b"),
        ]

    def test_gap_equal_to_threshold_does_not_split(self):
        words = [Word("a", 0, 500), Word("b", 1200, 1500)]
        blocks = segment_words(words)
        assert len(blocks) == 1
        assert blocks[0].text == "a b"

    def test_gap_one_ms_over_threshold_splits(self):
        words = [Word("a", 0, 500), Word("b", 1201, 1500)]
        assert len(segment_words(words)) == 2

    def test_pause_measured_from_last_word_in_run(self, pause_words):
        blocks = segment_words(pause_words)
        assert [b.text for b in blocks] == ["Hello world", "again"]
        assert blocks[0].end_ms == 900


# ---------------------------------------------------------------------------
# TestDurationBreak
# ---------------------------------------------------------------------------


class TestDurationBreak:
    """A block never spans more than 7000ms from its first word's start."""

    def test_run_spanning_7200ms_splits_once(self):
        words = [Word("w{}".format(i), i * 1000, (i + 1) * 1000) for i in range(7)]
        words.append(Word("w7", 7000, 7200))

        blocks = segment_words(words)

        assert len(blocks) == 2
        assert (blocks[0].start_ms, blocks[0].end_ms) == (0, 7000)
        assert (blocks[1].start_ms, blocks[1].end_ms) == (7000, 7200)
        assert blocks[1].text == "w7"

    def test_span_equal_to_limit_does_not_split(self):
        words = [Word("a", 0, 3000), Word("b", 3000, 7000)]
        assert len(segment_words(words)) == 1

    def test_duration_checked_against_candidate_end(self):
        # Starts inside the window but ends outside it
        words = [Word("a", 0, 6500), Word("b", 6600, 7100)]
        assert len(segment_words(words)) == 2


# ---------------------------------------------------------------------------
# TestLengthBreak
# ---------------------------------------------------------------------------


class TestLengthBreak:
    """The storage policy caps block text at 90 characters."""

    def test_storage_policy_breaks_before_exceeding_90_chars(self):
        words = make_words(["abcdefghi"] * 20, step_ms=100, length_ms=50)

        blocks = segment_words(words, "storage")

        # 9 words = 89 chars; the tenth would make 99
        first_block_words = blocks[0].text.replace("\n", " ").split(" ")
        assert len(first_block_words) == 9
        assert all(len(b.text.replace("\n", " ")) <= 90 for b in blocks)

    def test_exactly_90_chars_fits(self):
        words = make_words(["x" * 44, "y" * 45], step_ms=100, length_ms=50)
        assert len(segment_words(words, "storage")) == 1

    def test_basic_policy_ignores_length(self):
        words = make_words(["abcdefghi"] * 20, step_ms=100, length_ms=50)
        blocks = segment_words(words, "basic")
        assert len(blocks) == 1
        assert len(blocks[0].text.split("\n")) == 5


# ---------------------------------------------------------------------------
# TestPolicies
# ---------------------------------------------------------------------------


class TestPolicies:
    """Named policies and explicit SegmentationPolicy instances."""

    def test_registered_policies(self):
        assert set(POLICIES) == {"storage", "basic"}
        assert POLICIES["storage"] is STORAGE_POLICY
        assert POLICIES["basic"] is BASIC_POLICY

    def test_storage_policy_thresholds(self):
        assert STORAGE_POLICY.break_on_length is True
        assert STORAGE_POLICY.pause_threshold_ms == 700
        assert STORAGE_POLICY.max_duration_ms == 7000
        assert STORAGE_POLICY.max_chars == 90
        assert STORAGE_POLICY.max_line_chars == 42

    def test_basic_policy_has_no_length_rule(self):
        assert BASIC_POLICY.break_on_pause and BASIC_POLICY.break_on_duration
        assert BASIC_POLICY.break_on_length is False

    def test_unknown_policy_name_raises(self):
        with pytest.raises(ValueError, match="Unknown segmentation policy"):
            segment_words([Word("a", 0, 1)], "fancy")

    def test_resolve_policy_passes_instances_through(self):
        policy = SegmentationPolicy(name="custom", pause_threshold_ms=100)
        assert resolve_policy(policy) is policy

    def test_custom_policy_is_applied(self):
        policy = SegmentationPolicy(name="tight", pause_threshold_ms=100)
        words = [Word("a", 0, 100), Word("b", 250, 300)]
        assert len(segment_words(words, policy)) == 2
        assert len(segment_words(words, "basic")) == 1

    def test_all_rules_disabled_yields_one_block(self):
        policy = SegmentationPolicy(name="none", break_on_pause=False, break_on_duration=False)
        words = [Word("a", 0, 100), Word("b", 50000, 50100)]
        assert len(segment_words(words, policy)) == 1


# ---------------------------------------------------------------------------
# TestSegmentWordsEdgeCases
# ---------------------------------------------------------------------------


class TestSegmentWordsEdgeCases:
    """Degenerate and near-monotonic input."""

    def test_empty_input_returns_empty_list(self):
        assert segment_words([]) == []

    def test_single_word(self):
        assert segment_words([Word("solo", 10, 20)]) == [CaptionBlock(1, 10, 20, "solo")]

    def test_ids_are_contiguous_and_one_based(self):
        words = [Word(str(i), i * 2000, i * 2000 + 100) for i in range(5)]
        assert [b.id for b in segment_words(words)] == [1, 2, 3, 4, 5]

    def test_overlapping_words_never_force_a_pause_break(self):
        words = [Word("a", 0, 1000), Word("b", 800, 1200)]
        blocks = segment_words(words)
        assert len(blocks) == 1
        assert blocks[0].end_ms == 1200

    def test_block_end_is_latest_word_end(self):
        words = [Word("a", 0, 1500), Word("b", 600, 900)]
        block = segment_words(words)[0]
        assert block.end_ms == 1500
        assert block.start_ms <= block.end_ms

    def test_segmentation_is_deterministic(self, pause_words):
        assert segment_words(pause_words) == segment_words(pause_words)

    def test_input_order_is_preserved(self):
        words = make_words(["one", "two", "three", "four"], step_ms=1000)
        assert [b.text for b in segment_words(words)] == ["one", "two", "three", "four"]


# ---------------------------------------------------------------------------
# TestEndToEnd
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_two_phrases_split_at_pause(self):
        words = [
            Word("Hello", 0, 400),
            Word("world", 420, 900),
            Word("this", 2000, 2300),
            Word("is", 2320, 2500),
            Word("fine", 2520, 3000),
        ]

        for policy in ("storage", "basic"):
            assert segment_words(words, policy) == [
                CaptionBlock(id=1, start_ms=0, end_ms=900, text="Hello world"),
                CaptionBlock(id=2, start_ms=2000, end_ms=3000, text="this is fine"),
            ]
