"""Tests for SubtitleCorrector against a mocked Gemini endpoint.

WHY: A correction replaces text the user already approved. The client
must send the neighbouring blocks as context, ask for JSON, and refuse
answers it cannot turn into a non-empty single block of text.

HOW: SubtitleCorrector runs on httpx.MockTransport; the handler returns
a generateContent reply whose text is the model's JSON answer.

RULES:
- No test touches the network
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from captionize.api.corrections import (
    CORRECTION_TEMPERATURE,
    CorrectionError,
    SubtitleCorrector,
    build_context,
    parse_suggestion,
)
from captionize.core.models import CaptionBlock

BLOCKS = [
    CaptionBlock(1, 0, 1000, "Hello"),
    CaptionBlock(2, 1000, 2000, "their is a typo\nhere"),
    CaptionBlock(3, 2000, 3000, "Goodbye"),
]


def _reply(answer):
    return {"candidates": [{"content": {"parts": [{"text": answer}]}}]}


def _answer(suggested, explanation="Fixed 'their'."):
    return json.dumps({"suggestedCorrection": suggested, "explanation": explanation})


def _run(settings, handler, call):
    async def go():
        async with SubtitleCorrector(settings=settings, transport=httpx.MockTransport(handler)) as corrector:
            return await call(corrector)

    return asyncio.run(go())


class TestSuggestForBlock:
    def test_sends_context_and_parses_answer(self, gemini_settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=_reply(_answer("there is a typo\nhere")))

        suggestion = _run(gemini_settings, handler, lambda c: c.suggest_for_block(BLOCKS, 2))

        assert suggestion.block_id == 2
        assert suggestion.original_text == "their is a typo\nhere"
        assert suggestion.suggested_text == "there is a typo\nhere"
        assert suggestion.explanation == "Fixed 'their'."
        assert suggestion.changed

        body = json.loads(seen[0].content)
        assert body["generationConfig"] == {
            "temperature": CORRECTION_TEMPERATURE,
            "responseMimeType": "application/json",
        }
        prompt = body["contents"][0]["parts"][0]["text"]
        assert "Previous: Hello\nNext: Goodbye" in prompt
        assert "Main Subtitle to Correct:\ntheir is a typo\nhere" in prompt

    def test_unknown_block_id(self, gemini_settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_reply(_answer("x")))

        with pytest.raises(KeyError):
            _run(gemini_settings, handler, lambda c: c.suggest_for_block(BLOCKS, 9))
        assert calls == []

    def test_provider_error(self, gemini_settings):
        handler = lambda r: httpx.Response(500, text="boom")  # noqa: E731
        with pytest.raises(CorrectionError, match="500"):
            _run(gemini_settings, handler, lambda c: c.suggest("text"))

    def test_connect_error(self, gemini_settings):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(CorrectionError):
            _run(gemini_settings, handler, lambda c: c.suggest("text"))


class TestBuildContext:
    def test_middle_block(self):
        assert build_context(BLOCKS, 1) == "Previous: Hello\nNext: Goodbye"

    def test_first_block_flattens_next_lines(self):
        assert build_context(BLOCKS, 0) == "Next: their is a typo here"

    def test_single_block(self):
        assert build_context(BLOCKS[:1], 0) == "(none)"


class TestParseSuggestion:
    def test_code_fence_is_stripped(self):
        suggestion = parse_suggestion("```json\n" + _answer("Fine") + "\n```", "fine")
        assert suggestion.suggested_text == "Fine"

    def test_blank_lines_are_collapsed(self):
        suggestion = parse_suggestion(_answer("one\n\n\ntwo"), "one two")
        assert suggestion.suggested_text == "one\ntwo"

    def test_unchanged_text(self):
        assert not parse_suggestion(_answer("Same"), "Same").changed

    def test_missing_explanation_is_empty(self):
        suggestion = parse_suggestion(json.dumps({"suggestedCorrection": "Hi"}), "hi")
        assert suggestion.explanation == ""

    @pytest.mark.parametrize("answer", [
        "not json",
        "[1, 2]",
        json.dumps({"explanation": "no text"}),
        json.dumps({"suggestedCorrection": "   "}),
        json.dumps({"suggestedCorrection": 5}),
    ])
    def test_unusable_answers_raise(self, answer):
        with pytest.raises(CorrectionError):
            parse_suggestion(answer, "original")
