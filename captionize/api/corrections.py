"""AI-suggested corrections for single caption blocks.

WHY: Transcripts carry typos, mis-heard words and broken grammar. While
editing, a user can ask the language model for a cleaned-up version of
one block; the neighbouring blocks are sent along so the model sees the
sentence the block belongs to.

HOW: SubtitleCorrector is a GeminiClient (see api/translation.py). The
prompt asks for a JSON object with 'suggestedCorrection' and
'explanation', and generationConfig requests a JSON response. The answer
is parsed into a CorrectionSuggestion. Nothing is written back here; the
HTTP layer decides whether to apply it.

RULES:
- Temperature is 0.3
- Context is the previous and next block texts (when they exist)
- A suggestion is never empty and never contains a blank line
- Unparseable answers raise CorrectionError, never a silent echo
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from captionize.api.translation import GeminiClient, GenerationError, strip_fences
from captionize.core.models import CaptionBlock

logger = logging.getLogger(__name__)

CORRECTION_TEMPERATURE = 0.3

CORRECTION_PROMPT = (
    "You are a subtitle correction expert. Given the following subtitle text and "
    "its surrounding context, suggest a correction for the main subtitle text. "
    "Focus on grammatical errors, typos and clarity. Only correct the main text, "
    "not the context, and keep its line breaks where possible.\n\n"
    "Context:\n{context}\n\n"
    "Main Subtitle to Correct:\n{text}\n\n"
    "Respond with a JSON object with two keys: 'suggestedCorrection' and 'explanation'."
)

_BLANK_LINES_RE = re.compile(r"\n[ \t]*(?:\n[ \t]*)+")


class CorrectionError(GenerationError):
    """Raised when no usable correction comes back from the provider."""


@dataclass
class CorrectionSuggestion:
    original_text: str
    suggested_text: str
    explanation: str = ""
    block_id: Optional[int] = None

    @property
    def changed(self) -> bool:
        return self.suggested_text != self.original_text


def build_context(blocks: List[CaptionBlock], index: int) -> str:
    """Previous and next block texts around ``blocks[index]``."""
    lines = []
    if index > 0:
        lines.append("Previous: " + blocks[index - 1].text.replace("\n", " "))
    if index + 1 < len(blocks):
        lines.append("Next: " + blocks[index + 1].text.replace("\n", " "))
    return "\n".join(lines) or "(none)"


def build_correction_prompt(text: str, context: str) -> str:
    return CORRECTION_PROMPT.format(context=context.strip() or "(none)", text=text)


def parse_suggestion(answer: str, original_text: str) -> CorrectionSuggestion:
    """Parse the model's JSON answer.

    Raises:
        CorrectionError: If the answer is not a JSON object with a
            non-empty string 'suggestedCorrection'.
    """
    try:
        data = json.loads(strip_fences(answer))
    except ValueError as exc:
        raise CorrectionError("Correction response was not valid JSON") from exc
    if not isinstance(data, dict):
        raise CorrectionError("Correction response was not a JSON object")

    suggested = data.get("suggestedCorrection")
    if not isinstance(suggested, str) or not suggested.strip():
        raise CorrectionError("Correction response contained no suggestedCorrection")

    explanation = data.get("explanation")
    return CorrectionSuggestion(
        original_text=original_text,
        suggested_text=_BLANK_LINES_RE.sub("\n", suggested.strip()),
        explanation=explanation.strip() if isinstance(explanation, str) else "",
    )


class SubtitleCorrector(GeminiClient):
    """Async client that suggests corrections for caption text.

    RULES:
    - Use as: async with SubtitleCorrector() as corrector: ...
    """

    error_class = CorrectionError
    label = "Correction"

    async def suggest(self, text: str, context: str = "") -> CorrectionSuggestion:
        """Suggest a corrected version of ``text``.

        Raises:
            CorrectionError: On provider errors or unusable output.
        """
        answer = await self.generate(
            build_correction_prompt(text, context),
            {"temperature": CORRECTION_TEMPERATURE, "responseMimeType": "application/json"},
        )
        return parse_suggestion(answer, text)

    async def suggest_for_block(self, blocks: List[CaptionBlock], block_id: int) -> CorrectionSuggestion:
        """Suggest a correction for the block with ``block_id``.

        Raises:
            KeyError: If no block has that id.
            CorrectionError: On provider errors or unusable output.
        """
        for index, block in enumerate(blocks):
            if block.id == block_id:
                break
        else:
            raise KeyError(block_id)

        suggestion = await self.suggest(block.text, build_context(blocks, index))
        suggestion.block_id = block_id
        logger.info("Correction for block %d %s", block_id, "differs" if suggestion.changed else "is unchanged")
        return suggestion
