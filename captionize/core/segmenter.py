"""Word-to-caption segmentation and greedy line wrapping.

WHY: Transcription returns one entry per spoken word. Viewers need
caption blocks that appear at natural pauses, never stay on screen too
long, and never hold more text than can be read. Two call sites need
different subsets of those rules, so the rules are a policy value rather
than two copies of the loop.

HOW: segment_words() makes one forward pass. It keeps a "current run"
of words and, for each new word, evaluates the enabled break conditions
against the run:
  pause    gap between the run's last word and the candidate
  duration span from the run's first word to the candidate's end
  length   characters of the run's text plus the candidate
Any condition that holds closes the run into a CaptionBlock and starts a
new run with the candidate. The trailing run is flushed at the end and
ids are assigned 1..n in output order. Block text is produced by
build_segment_lines(), which greedily packs words into lines.

RULES:
- Empty input returns an empty list, never raises
- Output order is input order; ids are contiguous and 1-based
- Input is not validated; a negative gap never forces a pause break
- A block ends at the latest end among its words, so start <= end
- A word longer than the line limit sits on its own line, untruncated
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Union

from captionize.core.models import CaptionBlock, Word

PAUSE_THRESHOLD_MS = 700
MAX_SEGMENT_DURATION_MS = 7000
MAX_SEGMENT_CHARS = 90
MAX_CHARS_PER_LINE = 42


@dataclass(frozen=True)
class SegmentationPolicy:
    """Which break conditions are active, and their thresholds.

    WHY: The storage-oriented export also caps block length in
    characters; the simpler live-preview path only breaks on pauses and
    duration. Both are first-class policies.

    RULES:
    - Thresholds are strict: a break happens only when the value EXCEEDS them
    - max_line_chars applies to wrapping, independent of the break rules
    """

    name: str
    break_on_pause: bool = True
    break_on_duration: bool = True
    break_on_length: bool = False
    pause_threshold_ms: int = PAUSE_THRESHOLD_MS
    max_duration_ms: int = MAX_SEGMENT_DURATION_MS
    max_chars: int = MAX_SEGMENT_CHARS
    max_line_chars: int = MAX_CHARS_PER_LINE


STORAGE_POLICY = SegmentationPolicy(name="storage", break_on_length=True)
BASIC_POLICY = SegmentationPolicy(name="basic", break_on_length=False)

POLICIES: Dict[str, SegmentationPolicy] = {
    "storage": STORAGE_POLICY,
    "basic": BASIC_POLICY,
}


def resolve_policy(policy: Union[str, SegmentationPolicy]) -> SegmentationPolicy:
    """Look up a policy by name, or pass an instance through.

    Raises:
        ValueError: If the name is not registered in POLICIES.
    """
    if isinstance(policy, SegmentationPolicy):
        return policy
    if policy not in POLICIES:
        raise ValueError(
            "Unknown segmentation policy '{}'. Available: {}".format(
                policy, ", ".join(sorted(POLICIES))
            )
        )
    return POLICIES[policy]


def build_segment_lines(words: Sequence[Word], max_line_chars: int = MAX_CHARS_PER_LINE) -> str:
    """Greedily pack words into lines of at most ``max_line_chars``.

    Words are joined with single spaces. A new line starts when appending
    the next word (with its separating space) would exceed the limit.
    Lines are joined with ``"\\n"``.
    """
    lines: List[str] = []
    current = ""
    for word in words:
        if not current:
            current = word.text
        elif len(current) + 1 + len(word.text) > max_line_chars:
            lines.append(current)
            current = word.text
        else:
            current = "{} {}".format(current, word.text)
    if current:
        lines.append(current)
    return "\n".join(lines)


def _should_break(run: List[Word], run_chars: int, word: Word, policy: SegmentationPolicy) -> bool:
    if policy.break_on_pause and word.start_ms - run[-1].end_ms > policy.pause_threshold_ms:
        return True
    if policy.break_on_duration and word.end_ms - run[0].start_ms > policy.max_duration_ms:
        return True
    if policy.break_on_length and run_chars + 1 + len(word.text) > policy.max_chars:
        return True
    return False


def _close_run(run: List[Word], block_id: int, policy: SegmentationPolicy) -> CaptionBlock:
    return CaptionBlock(
        id=block_id,
        start_ms=run[0].start_ms,
        end_ms=max(w.end_ms for w in run),
        text=build_segment_lines(run, policy.max_line_chars),
    )


def segment_words(
    words: Sequence[Word],
    policy: Union[str, SegmentationPolicy] = "storage",
) -> List[CaptionBlock]:
    """Convert a chronological word stream into caption blocks.

    Args:
        words: Words ordered by start_ms (near-monotonic input tolerated).
        policy: A name from POLICIES or a SegmentationPolicy instance.

    Returns:
        Caption blocks with ids 1..n in input order.

    Raises:
        ValueError: Only for an unknown policy name.
    """
    active = resolve_policy(policy)
    blocks: List[CaptionBlock] = []
    run: List[Word] = []
    run_chars = 0  # length of " ".join(run texts)

    for word in words:
        if run and _should_break(run, run_chars, word, active):
            blocks.append(_close_run(run, len(blocks) + 1, active))
            run = []

        if run:
            run_chars += 1 + len(word.text)
        else:
            run_chars = len(word.text)
        run.append(word)

    if run:
        blocks.append(_close_run(run, len(blocks) + 1, active))

    return blocks
