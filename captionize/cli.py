"""Command-line interface for captionize.

WHY: Most caption work is file-in, file-out: a word list from some
transcription run becomes an SRT, an SRT becomes a VTT for the web, or a
media file goes through transcription and comes back as subtitles. The
CLI wires the core and the AssemblyAI client behind four subcommands so
none of that needs the HTTP server.

HOW: argparse with one subparser per command, each bound to a handler
via set_defaults(handler=...):
  segment     words JSON → SRT/VTT (input validated with jsonschema)
  convert     SRT/VTT → SRT/VTT, format chosen by file extension
  transcribe  media file or URL → AssemblyAI → segment → SRT/VTT
  serve       run the HTTP API with uvicorn
Status messages go to stderr; subtitle text goes to -o or stdout.

RULES:
- Status output goes to stderr (not stdout) so output can be piped
- Exit codes: 0 success, 1 error, 130 cancelled by the user
- Existing output files are never overwritten; a numeric suffix is added
- --verbose turns on DEBUG logging for every module
- Python 3.9+ compatible (no match/case, no X | Y unions at runtime)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import jsonschema

from captionize import __version__
from captionize.api.client import AssemblyAIClient
from captionize.config import DEFAULT_LANGUAGE_CODE, DEFAULT_SEGMENTATION_POLICY
from captionize.core.models import CaptionBlock, Word
from captionize.core.segmenter import POLICIES, segment_words
from captionize.formatters import FORMATTERS, PARSERS
from captionize.formatters.base import BaseFormatter
from captionize.formatters.srt import parse_srt_lenient

logger = logging.getLogger(__name__)

# Word files are either a bare list or {"words": [...]}, with times in
# milliseconds under snake_case, camelCase or provider-style keys.
_WORD_SCHEMA = {
    "type": "object",
    "required": ["text"],
    "properties": {
        "text": {"type": "string"},
        "start_ms": {"type": "integer", "minimum": 0},
        "end_ms": {"type": "integer", "minimum": 0},
        "startMs": {"type": "integer", "minimum": 0},
        "endMs": {"type": "integer", "minimum": 0},
        "start": {"type": "integer", "minimum": 0},
        "end": {"type": "integer", "minimum": 0},
    },
    "anyOf": [
        {"required": ["start_ms", "end_ms"]},
        {"required": ["startMs", "endMs"]},
        {"required": ["start", "end"]},
    ],
}

WORDS_SCHEMA = {
    "oneOf": [
        {"type": "array", "items": _WORD_SCHEMA},
        {
            "type": "object",
            "required": ["words"],
            "properties": {"words": {"type": "array", "items": _WORD_SCHEMA}},
        },
    ]
}

_SUFFIX_FORMATS = {".srt": "srt", ".vtt": "vtt"}


class CLIError(Exception):
    """A user-facing error: printed as "Error: ..." with exit code 1."""


def _status(msg: str) -> None:
    """Print a status message to stderr.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def load_words(path: Path) -> List[Word]:
    """Read and validate a words JSON file.

    Raises:
        CLIError: If the file is missing, is not JSON, or fails WORDS_SCHEMA.
    """
    if not path.is_file():
        raise CLIError("File not found: {}".format(path))
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CLIError("{} is not valid JSON: {}".format(path.name, exc))

    try:
        jsonschema.validate(data, WORDS_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise CLIError("{} is not a valid word list: {}".format(path.name, exc.message))

    items = data["words"] if isinstance(data, dict) else data
    return [Word.from_dict(item) for item in items]


def format_from_path(path: Path) -> str:
    """Map a .srt/.vtt file extension to a format key."""
    fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise CLIError(
            "Cannot tell subtitle format from '{}'. Use a .srt or .vtt file.".format(path.name)
        )
    return fmt


def _build_formatter(fmt: str, font_family: Optional[str] = None) -> BaseFormatter:
    if fmt == "vtt":
        return FORMATTERS["vtt"](font_family=font_family)
    return FORMATTERS[fmt]()


def _resolve_output_path(path: Path) -> Path:
    """Return path, or path with -2, -3, ... before the suffix if it exists."""
    if not path.exists():
        return path
    counter = 2
    while True:
        candidate = path.with_name("{}-{}{}".format(path.stem, counter, path.suffix))
        if not candidate.exists():
            return candidate
        counter += 1


def _write_blocks(
    blocks: List[CaptionBlock],
    fmt: str,
    output: Optional[str],
    font_family: Optional[str] = None,
    default_path: Optional[Path] = None,
) -> None:
    """Serialize blocks and write them to -o, a default path, or stdout."""
    result = _build_formatter(fmt, font_family).format(blocks)

    if output == "-" or (output is None and default_path is None):
        sys.stdout.write(result.content)
        return

    target = Path(output) if output else default_path
    if not target.parent.is_dir():
        raise CLIError("Output directory does not exist: {}".format(target.parent))
    target = _resolve_output_path(target)
    target.write_text(result.content, encoding="utf-8")
    _status("Saved {} blocks to {}".format(len(blocks), target))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_segment(args: argparse.Namespace) -> None:
    words = load_words(Path(args.words_file))
    _status("Loaded {} words".format(len(words)))
    blocks = segment_words(words, args.policy)
    _status("  {} caption blocks (policy: {})".format(len(blocks), args.policy))
    _write_blocks(blocks, args.format, args.output, args.font_family)


def cmd_convert(args: argparse.Namespace) -> None:
    source = Path(args.input_file)
    target = Path(args.output_file)
    if not source.is_file():
        raise CLIError("File not found: {}".format(source))

    in_fmt = format_from_path(source)
    out_fmt = format_from_path(target)

    text = source.read_text(encoding="utf-8-sig")
    if in_fmt == "srt" and args.renumber:
        blocks = parse_srt_lenient(text)
    else:
        blocks = PARSERS[in_fmt](text)
    if not blocks:
        raise CLIError("No subtitle blocks found in {}".format(source.name))

    _status("Parsed {} blocks from {}".format(len(blocks), source.name))
    _write_blocks(blocks, out_fmt, str(target), args.font_family)


async def _transcribe(args: argparse.Namespace) -> None:
    """Upload (or reference) media, transcribe, segment and save.

    RULES:
    - http(s) sources are passed to the provider as-is; files are uploaded
    - The provider transcript is deleted afterwards, even on failure
    """
    source = args.source
    is_url = source.startswith(("http://", "https://"))
    if is_url:
        default_path = Path.cwd() / "{}.{}".format(Path(source.split("?", 1)[0]).stem or "transcript", args.format)
    else:
        input_path = Path(source).resolve()
        if not input_path.is_file():
            raise CLIError("File not found: {}".format(input_path))
        default_path = input_path.with_suffix(".{}".format(args.format))

    transcript_id: Optional[str] = None
    async with AssemblyAIClient() as client:
        try:
            audio_url = source if is_url else await client.upload_file(input_path, on_status=_status)
            transcript_id = await client.create_transcript(
                audio_url,
                language_code=args.language,
                speaker_labels=False,
                on_status=_status,
            )
            status = await client.poll_until_complete(transcript_id, on_status=_status)

            words = [w.to_word() for w in status.words]
            _status("  {} words, language: {}".format(len(words), status.language_code or "unknown"))
            blocks = segment_words(words, args.policy)
            _write_blocks(blocks, args.format, args.output, args.font_family, default_path)
        finally:
            if transcript_id:
                await client.delete_transcript(transcript_id, on_status=_status)


def cmd_transcribe(args: argparse.Namespace) -> None:
    asyncio.run(_transcribe(args))


def cmd_serve(args: argparse.Namespace) -> None:
    from captionize.server.app import run_api

    _status("Serving on http://{}:{} (docs at /docs)".format(args.host, args.port))
    run_api(host=args.host, port=args.port)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="captionize",
        description="Turn word-level transcripts into SRT/WebVTT caption files.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s {}".format(__version__))
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    policy_help = "Segmentation policy: {} (default: %(default)s).".format(", ".join(sorted(POLICIES)))
    format_help = "Subtitle format to write (default: %(default)s)."

    segment = subparsers.add_parser("segment", help="Segment a words JSON file into subtitles.")
    segment.add_argument("words_file", help="JSON list of {text, start_ms, end_ms} words.")
    segment.add_argument("-o", "--output", default=None, help="Output file (default: stdout).")
    segment.add_argument("--format", choices=sorted(FORMATTERS), default="srt", help=format_help)
    segment.add_argument("--policy", choices=sorted(POLICIES), default=DEFAULT_SEGMENTATION_POLICY, help=policy_help)
    segment.add_argument("--font-family", default=None, help="Font family for the WebVTT STYLE block.")
    segment.set_defaults(handler=cmd_segment)

    convert = subparsers.add_parser("convert", help="Convert between SRT and WebVTT.")
    convert.add_argument("input_file", help="Source .srt or .vtt file.")
    convert.add_argument("output_file", help="Destination .srt or .vtt file.")
    convert.add_argument(
        "--renumber",
        action="store_true",
        help="Read SRT leniently (optional ids, '.' separators) and renumber blocks 1..n.",
    )
    convert.add_argument("--font-family", default=None, help="Font family for the WebVTT STYLE block.")
    convert.set_defaults(handler=cmd_convert)

    transcribe = subparsers.add_parser("transcribe", help="Transcribe media and write subtitles.")
    transcribe.add_argument("source", help="Local audio/video file or an http(s) URL.")
    transcribe.add_argument(
        "--language",
        default=DEFAULT_LANGUAGE_CODE,
        help="Spoken language code, or 'auto' for detection (default: %(default)s).",
    )
    transcribe.add_argument("--policy", choices=sorted(POLICIES), default=DEFAULT_SEGMENTATION_POLICY, help=policy_help)
    transcribe.add_argument("--format", choices=sorted(FORMATTERS), default="srt", help=format_help)
    transcribe.add_argument("--font-family", default=None, help="Font family for the WebVTT STYLE block.")
    transcribe.add_argument(
        "-o", "--output",
        default=None,
        help="Output file, or '-' for stdout (default: next to the source file).",
    )
    transcribe.set_defaults(handler=cmd_transcribe)

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        args.handler(args)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except Exception as e:
        # CLIError, ConfigurationError, provider errors: message only
        logger.debug("Command %s failed", args.command, exc_info=True)
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
